"""
Core Infrastructure for CatalogForge.

Architecture Position
---------------------
    CLI / API (outermost)
      └── reconcile (trigger_scrape, upsert)
            └── scraping, storage
                  └── **Core** (innermost - you are here)

The Core layer has no dependencies on other CatalogForge modules.

Components
----------
**Configuration (config/)**
    Nested dataclasses loaded from YAML with ${VAR} expansion and
    CATALOGFORGE_* environment overrides.

**Logging (logging.py)**
    Structured logging with context binding, plus ScrapeLogger for
    per-strategy orchestration lines.

**Exceptions (exceptions.py)**
    CatalogForgeError hierarchy with error codes and fix hints.

**Retry (retry.py)**
    Exponential backoff for transient HTTP failures.
"""
