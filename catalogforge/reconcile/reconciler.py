"""Persistence reconciler: upsert scraped records by natural key.

Natural keys:
    category  name or slug
    product   (title, category_id)

Each upsert looks the row up first and updates it when present. When it
is absent the row is inserted; if that insert loses a race with a
concurrent identical upsert (DuplicateRecordError) the row is re-read by
its natural key and returned, so repeating an upsert never fails and
never creates a second row.

Reviews are never merged: a detail re-scrape replaces the product's
whole review set.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from catalogforge.core.exceptions import DuplicateRecordError, NotFoundError
from catalogforge.core.logging import get_logger
from catalogforge.scraping.models import ScrapedCategory, ScrapedProduct, ScrapedReview
from catalogforge.storage.base import (
    CatalogRepository,
    CategoryRecord,
    ProductRecord,
    ReviewRecord,
)

logger = get_logger(__name__)

# Scraped product fields copied onto the stored row when present
PRODUCT_FIELDS = (
    "author",
    "price",
    "currency",
    "image_url",
    "source_url",
    "condition",
    "format",
    "rating",
    "review_count",
    "description",
    "isbn",
    "isbn13",
    "publisher",
    "pages",
    "language",
    "dimensions",
    "synopsis",
)


class PersistenceReconciler:
    """Maps scraped value objects onto stored rows."""

    def __init__(
        self,
        repository: CatalogRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self._clock = clock or datetime.utcnow

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def upsert_category(self, scraped: ScrapedCategory) -> CategoryRecord:
        """Insert or refresh a category; idempotent for identical input.

        Only source_url and is_active are refreshed on an existing row.
        parent_id, display_order, icon and color belong to other writers.
        """
        existing = self.repository.find_category_by_name_or_slug(
            scraped.name, scraped.slug
        )
        if existing is not None:
            return self._refresh_category(existing, scraped)

        candidate = CategoryRecord(
            name=scraped.name,
            slug=scraped.slug,
            description=scraped.description or None,
            source_url=scraped.source_url,
        )
        try:
            saved = self.repository.save_category(candidate)
        except DuplicateRecordError:
            winner = self.repository.find_category_by_name_or_slug(
                scraped.name, scraped.slug
            )
            if winner is None:
                raise
            logger.debug("Category insert raced, using existing row", slug=scraped.slug)
            return winner

        logger.debug("Inserted category", id=saved.id, slug=saved.slug)
        return saved

    def _refresh_category(
        self, existing: CategoryRecord, scraped: ScrapedCategory
    ) -> CategoryRecord:
        if existing.source_url == scraped.source_url and existing.is_active:
            return existing
        existing.source_url = scraped.source_url
        existing.is_active = True
        if not existing.description:
            existing.description = scraped.description or None
        return self.repository.save_category(existing)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def upsert_product(self, scraped: ScrapedProduct, category_id: int) -> ProductRecord:
        """Insert or refresh a product within one category.

        Raises:
            NotFoundError: If the category does not exist
        """
        if self.repository.get_category(category_id) is None:
            raise NotFoundError(
                f"Category {category_id} not found",
                entity="category",
                entity_id=category_id,
            )

        existing = self.repository.find_product_by_title_and_category(
            scraped.title, category_id
        )
        if existing is not None:
            self._apply_scraped(existing, scraped)
            return self.repository.save_product(existing)

        candidate = ProductRecord(title=scraped.title, category_id=category_id)
        self._apply_scraped(candidate, scraped)
        try:
            saved = self.repository.save_product(candidate)
        except DuplicateRecordError:
            winner = self.repository.find_product_by_title_and_category(
                scraped.title, category_id
            )
            if winner is None:
                raise
            logger.debug("Product insert raced, using existing row", title=scraped.title)
            return winner

        logger.debug("Inserted product", id=saved.id, title=saved.title)
        return saved

    def upsert_product_detail(
        self, product_id: int, scraped: ScrapedProduct
    ) -> ProductRecord:
        """Merge a detail-page scrape into an existing product.

        The stored title (part of the natural key) is left unchanged.

        Raises:
            NotFoundError: If the product does not exist
        """
        existing = self.repository.get_product(product_id)
        if existing is None:
            raise NotFoundError(
                f"Product {product_id} not found", entity="product", entity_id=product_id
            )
        self._apply_scraped(existing, scraped)
        return self.repository.save_product(existing)

    def _apply_scraped(self, product: ProductRecord, scraped: ScrapedProduct) -> None:
        """Copy present scraped values; synthetic values never replace real ones."""
        synthetic = set(product.synthetic_fields)
        for name in PRODUCT_FIELDS:
            value = getattr(scraped, name, None)
            if value is None or value == "":
                continue
            if name in scraped.synthetic_fields:
                current = getattr(product, name)
                if current is not None and name not in synthetic:
                    continue
                synthetic.add(name)
            else:
                synthetic.discard(name)
            setattr(product, name, value)

        if scraped.similar_products:
            product.similar_products = list(scraped.similar_products)
        product.synthetic_fields = sorted(synthetic)
        product.last_scraped_at = self._clock()

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def replace_reviews(
        self, product_id: int, reviews: List[ScrapedReview]
    ) -> List[ReviewRecord]:
        """Delete every stored review of the product, then insert these."""
        records = [
            ReviewRecord(
                product_id=product_id,
                rating=review.rating,
                reviewer_name=review.reviewer_name,
                review_title=review.review_title,
                review_text=review.review_text,
                is_verified_purchase=review.is_verified_purchase,
                review_date=review.review_date,
                helpful_count=review.helpful_count,
            )
            for review in reviews
        ]
        return self.repository.replace_reviews_for_product(product_id, records)
