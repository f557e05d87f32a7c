"""CatalogForge - Book catalog ingestion from a third-party retail site.

Scrapes categories and products with a headless browser, falls back to
static HTML, normalizes the fields and reconciles them into storage.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
