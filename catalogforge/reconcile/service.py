"""Scrape service: the single entry point used by the API and CLI.

trigger_scrape() resolves the target URL for a content type, runs the
orchestrator under an outer deadline and reconciles every returned
record. Per-item persistence failures are collected into the outcome
instead of failing the batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from catalogforge.core.config import Config
from catalogforge.core.exceptions import (
    InvalidTargetError,
    NotFoundError,
    ScrapeFailedError,
)
from catalogforge.core.logging import get_logger
from catalogforge.reconcile.reconciler import PersistenceReconciler
from catalogforge.scraping.cache import ResultCache
from catalogforge.scraping.guard import OriginGuard
from catalogforge.scraping.models import ContentType, ScrapedProduct
from catalogforge.scraping.orchestrator import CrawlOrchestrator
from catalogforge.storage.base import CatalogRepository, CategoryRecord

logger = get_logger(__name__)


@dataclass
class ScrapeOutcome:
    """Result of one trigger_scrape() call."""

    success: bool
    message: str
    content_type: str
    data: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "content_type": self.content_type,
            "data": self.data,
            "errors": self.errors,
        }


def category_page_url(
    base_url: str, category: CategoryRecord, guard: Optional[OriginGuard] = None
) -> str:
    """Stored source URL, or the catalog path derived from the slug.

    A stored URL the guard rejects is ignored.
    """
    if category.source_url and (guard is None or guard.is_allowed(category.source_url)):
        return category.source_url
    return f"{base_url.rstrip('/')}/category/{category.slug}"


class ScrapeService:
    """Runs scrape-and-persist operations for one configuration."""

    def __init__(
        self,
        config: Config,
        repository: CatalogRepository,
        orchestrator: Optional[CrawlOrchestrator] = None,
        cache: Optional[ResultCache] = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.orchestrator = orchestrator or CrawlOrchestrator(
            config.scraping,
            cache=cache if cache is not None else ResultCache(config.cache),
        )
        self.reconciler = PersistenceReconciler(repository)

    @property
    def cache(self) -> ResultCache:
        return self.orchestrator.cache

    async def trigger_scrape(
        self, content_type: ContentType, target_id: Optional[int] = None
    ) -> ScrapeOutcome:
        """Scrape and persist one target.

        Args:
            content_type: categories, products or productDetail
            target_id: Category id for products, product id for productDetail

        Returns:
            ScrapeOutcome with persisted records and per-item errors

        Raises:
            InvalidTargetError: Unknown content type or missing target id
            NotFoundError: target_id does not exist
            ScrapeFailedError: Nothing could be extracted, or the deadline passed
        """
        try:
            content_type = ContentType.parse(content_type)
        except ValueError as e:
            raise InvalidTargetError(str(e)) from e

        if content_type == ContentType.CATEGORIES:
            return await self.scrape_categories()
        if target_id is None:
            raise InvalidTargetError(f"{content_type.value} scrape requires a target id")
        if content_type == ContentType.PRODUCTS:
            return await self.scrape_products(target_id)
        return await self.scrape_product_detail(target_id)

    async def scrape_categories(self) -> ScrapeOutcome:
        url = self.config.scraping.base_url
        records = await self._scrape(ContentType.CATEGORIES, url)

        data, errors = [], []
        for scraped in records:
            try:
                data.append(self.reconciler.upsert_category(scraped).to_dict())
            except Exception as e:
                logger.warning("Failed to save category", name=scraped.name, error=str(e))
                errors.append(f"Failed to save category {scraped.name!r}: {e}")

        return self._outcome(ContentType.CATEGORIES, "categories", len(records), data, errors)

    async def scrape_products(self, category_id: int) -> ScrapeOutcome:
        category = self.repository.get_category(category_id)
        if category is None:
            raise NotFoundError(
                f"Category {category_id} not found",
                entity="category",
                entity_id=category_id,
            )

        url = category_page_url(
            self.config.scraping.base_url, category, self.orchestrator.guard
        )
        records = await self._scrape(
            ContentType.PRODUCTS, url, label=category.name, slug=category.slug
        )

        data, errors = [], []
        for scraped in records[: self.config.scraping.product_limit]:
            try:
                data.append(self.reconciler.upsert_product(scraped, category.id).to_dict())
            except Exception as e:
                logger.warning("Failed to save product", title=scraped.title, error=str(e))
                errors.append(f"Failed to save product {scraped.title!r}: {e}")

        return self._outcome(ContentType.PRODUCTS, "products", len(records), data, errors)

    async def scrape_product_detail(self, product_id: int) -> ScrapeOutcome:
        product = self.repository.get_product(product_id)
        if product is None:
            raise NotFoundError(
                f"Product {product_id} not found", entity="product", entity_id=product_id
            )
        if not product.source_url:
            raise InvalidTargetError(f"Product {product_id} has no source URL to scrape")

        records = await self._scrape(ContentType.PRODUCT_DETAIL, product.source_url)
        scraped: ScrapedProduct = records[0]

        updated = self.reconciler.upsert_product_detail(product_id, scraped)
        reviews = self.reconciler.replace_reviews(product_id, scraped.reviews)

        item = updated.to_dict()
        item["reviews"] = [review.to_dict() for review in reviews]
        return ScrapeOutcome(
            success=True,
            message=f"Scraped detail for {updated.title!r} with {len(reviews)} reviews",
            content_type=ContentType.PRODUCT_DETAIL.value,
            data=[item],
        )

    async def _scrape(self, content_type: ContentType, url: str, **kwargs: Any) -> list:
        timeout = self.config.scraping.orchestration_timeout_sec
        try:
            return await asyncio.wait_for(
                self.orchestrator.scrape(content_type, url, **kwargs), timeout
            )
        except asyncio.TimeoutError as e:
            logger.error("Scrape deadline exceeded", url=url, timeout_sec=timeout)
            raise ScrapeFailedError(
                f"Scraping {content_type.value} from {url} exceeded {timeout:.0f}s",
                content_type=content_type.value,
                url=url,
            ) from e

    @staticmethod
    def _outcome(
        content_type: ContentType,
        noun: str,
        scraped: int,
        data: List[Dict[str, Any]],
        errors: List[str],
    ) -> ScrapeOutcome:
        if errors:
            message = f"Saved {len(data)} of {scraped} scraped {noun}"
        else:
            message = f"Successfully scraped {len(data)} {noun}"
        return ScrapeOutcome(
            success=bool(data) or not errors,
            message=message,
            content_type=content_type.value,
            data=data,
            errors=errors,
        )
