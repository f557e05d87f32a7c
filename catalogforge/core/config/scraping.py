"""
Scraping and result-cache configuration.

Defaults mirror what the origin site tolerates: a handful of page visits
per call, tens of seconds per extractor attempt, and a short settle delay
for client-side rendering.
"""

from dataclasses import dataclass, field
from typing import List

DEFAULT_BASE_URL = "https://www.worldofbooks.com"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass
class ScrapingConfig:
    """Extraction and orchestration settings."""

    base_url: str = DEFAULT_BASE_URL
    mirror_domains: List[str] = field(default_factory=list)
    browser_enabled: bool = True
    headless: bool = True
    browser_timeout_sec: float = 30.0
    static_timeout_sec: float = 20.0
    settle_delay_ms: int = 2000
    max_navigations: int = 3
    max_candidates: int = 50
    max_list_items: int = 20
    product_limit: int = 40
    orchestration_timeout_sec: float = 120.0
    http_retries: int = 2
    # Substitute plausible condition/format/rating values when unreadable
    fill_missing: bool = False
    currency: str = "GBP"
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class CacheConfig:
    """Result cache settings (one TTL per content type)."""

    enabled: bool = True
    categories_ttl_sec: float = 3600.0
    products_ttl_sec: float = 300.0
    detail_ttl_sec: float = 900.0
    max_entries: int = 100
