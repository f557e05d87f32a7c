"""In-process catalog repository.

Honors the same uniqueness rules as the SQL schema. Records are copied
on the way in and out, so callers never hold references to stored state.
"""

import copy
from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional

from catalogforge.core.exceptions import DuplicateRecordError, NotFoundError
from catalogforge.storage.base import (
    CatalogRepository,
    CategoryRecord,
    ProductRecord,
    ReviewRecord,
)


class MemoryCatalogRepository(CatalogRepository):
    """Dictionary-backed storage for tests and throwaway runs."""

    def __init__(self) -> None:
        self._categories: Dict[int, CategoryRecord] = {}
        self._products: Dict[int, ProductRecord] = {}
        self._reviews: Dict[int, ReviewRecord] = {}
        self._next_ids = {"category": 1, "product": 1, "review": 1}
        self._lock = Lock()

    def _allocate(self, entity: str) -> int:
        next_id = self._next_ids[entity]
        self._next_ids[entity] += 1
        return next_id

    # Categories

    def find_category_by_name_or_slug(
        self, name: str, slug: str
    ) -> Optional[CategoryRecord]:
        with self._lock:
            for field_name, value in (("name", name), ("slug", slug)):
                for category in self._categories.values():
                    if getattr(category, field_name) == value:
                        return copy.deepcopy(category)
            return None

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        with self._lock:
            category = self._categories.get(category_id)
            return copy.deepcopy(category) if category else None

    def save_category(self, category: CategoryRecord) -> CategoryRecord:
        with self._lock:
            for other in self._categories.values():
                if other.id == category.id:
                    continue
                if other.name == category.name or other.slug == category.slug:
                    raise DuplicateRecordError(
                        f"Duplicate category: {category.name!r}",
                        entity="category",
                        natural_key={"name": category.name, "slug": category.slug},
                    )

            stored = self._stamp(category, self._categories, "category")
            self._categories[stored.id] = stored
            return copy.deepcopy(stored)

    def list_categories(self) -> List[CategoryRecord]:
        with self._lock:
            ordered = sorted(
                self._categories.values(), key=lambda c: (c.display_order, c.name)
            )
            return copy.deepcopy(ordered)

    # Products

    def find_product_by_title_and_category(
        self, title: str, category_id: int
    ) -> Optional[ProductRecord]:
        with self._lock:
            for product in self._products.values():
                if product.title == title and product.category_id == category_id:
                    return copy.deepcopy(product)
            return None

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        with self._lock:
            product = self._products.get(product_id)
            return copy.deepcopy(product) if product else None

    def save_product(self, product: ProductRecord) -> ProductRecord:
        with self._lock:
            if product.category_id not in self._categories:
                raise NotFoundError(
                    f"Category {product.category_id} not found",
                    entity="category",
                    entity_id=product.category_id,
                )
            for other in self._products.values():
                if other.id == product.id:
                    continue
                if other.title == product.title and other.category_id == product.category_id:
                    raise DuplicateRecordError(
                        f"Duplicate product: {product.title!r}",
                        entity="product",
                        natural_key={
                            "title": product.title,
                            "category_id": product.category_id,
                        },
                    )

            stored = self._stamp(product, self._products, "product")
            self._products[stored.id] = stored
            return copy.deepcopy(stored)

    def list_products(self, category_id: int) -> List[ProductRecord]:
        with self._lock:
            products = [p for p in self._products.values() if p.category_id == category_id]
            return copy.deepcopy(sorted(products, key=lambda p: p.title))

    # Reviews

    def replace_reviews_for_product(
        self, product_id: int, reviews: List[ReviewRecord]
    ) -> List[ReviewRecord]:
        with self._lock:
            if product_id not in self._products:
                raise NotFoundError(
                    f"Product {product_id} not found", entity="product", entity_id=product_id
                )
            self._reviews = {
                review_id: review
                for review_id, review in self._reviews.items()
                if review.product_id != product_id
            }
            inserted = []
            for review in reviews:
                stored = copy.deepcopy(review)
                stored.id = self._allocate("review")
                stored.product_id = product_id
                stored.created_at = datetime.utcnow()
                self._reviews[stored.id] = stored
                inserted.append(copy.deepcopy(stored))
            return inserted

    def get_reviews_for_product(self, product_id: int) -> List[ReviewRecord]:
        with self._lock:
            reviews = [r for r in self._reviews.values() if r.product_id == product_id]
            return copy.deepcopy(sorted(reviews, key=lambda r: r.id))

    def _stamp(self, record, table: Dict, entity: str):
        """Copy the record and fill id and timestamps for storage."""
        stored = copy.deepcopy(record)
        now = datetime.utcnow()
        if stored.id is None:
            stored.id = self._allocate(entity)
            stored.created_at = now
        elif stored.id not in table:
            raise NotFoundError(
                f"{entity.capitalize()} {stored.id} not found",
                entity=entity,
                entity_id=stored.id,
            )
        else:
            stored.created_at = table[stored.id].created_at
        stored.updated_at = now
        return stored
