"""
Base Interfaces for Catalog Storage.

The reconciler depends only on the CatalogRepository interface defined
here, never on a schema or query language:

    ┌─────────────────┐
    │   Reconciler    │
    └────────┬────────┘
             │
   ┌─────────┴─────────┐
   │ CatalogRepository │
   │  (abstract base)  │
   └─────────┬─────────┘
             │
      ┌──────┴──────┐
      ↓             ↓
  ┌────────┐   ┌────────┐
  │  SQL   │   │ Memory │
  └────────┘   └────────┘

Interface Contract
------------------
- Records passed in and returned are plain dataclasses; a record with
  ``id=None`` is inserted, otherwise the row with that id is updated.
- Inserts that collide with a uniqueness constraint raise
  DuplicateRecordError. Categories are unique on name and on slug;
  products on (title, category_id).
- replace_reviews_for_product deletes every review of the product and
  inserts the given set in one transaction.
- Any other storage failure propagates unchanged.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass
class CategoryRecord:
    """A stored category."""

    name: str
    slug: str
    id: Optional[int] = None
    description: Optional[str] = None
    source_url: Optional[str] = None
    parent_id: Optional[int] = None
    display_order: int = 0
    is_active: bool = True
    icon: Optional[str] = None
    color: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class ProductRecord:
    """A stored product."""

    title: str
    category_id: int
    id: Optional[int] = None
    author: Optional[str] = None
    price: Optional[float] = None
    currency: str = "GBP"
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    condition: Optional[str] = None
    format: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    isbn13: Optional[str] = None
    publisher: Optional[str] = None
    pages: Optional[int] = None
    language: Optional[str] = None
    dimensions: Optional[str] = None
    synopsis: Optional[str] = None
    similar_products: List[str] = field(default_factory=list)
    synthetic_fields: List[str] = field(default_factory=list)
    is_available: bool = True
    last_scraped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class ReviewRecord:
    """A stored review, owned by exactly one product."""

    product_id: int
    rating: int = 3
    id: Optional[int] = None
    reviewer_name: Optional[str] = None
    review_title: Optional[str] = None
    review_text: Optional[str] = None
    is_verified_purchase: bool = False
    review_date: Optional[date] = None
    helpful_count: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in data.items()
    }


class CatalogRepository(ABC):
    """Storage operations the reconciler needs."""

    @abstractmethod
    def find_category_by_name_or_slug(
        self, name: str, slug: str
    ) -> Optional[CategoryRecord]:
        """Return the category whose name or slug matches, preferring name."""

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        """Return a category by surrogate id."""

    @abstractmethod
    def save_category(self, category: CategoryRecord) -> CategoryRecord:
        """Insert (id None) or update a category.

        Raises:
            DuplicateRecordError: If name or slug is already taken
            NotFoundError: If updating an id that does not exist
        """

    @abstractmethod
    def list_categories(self) -> List[CategoryRecord]:
        """All categories ordered by display_order, then name."""

    @abstractmethod
    def find_product_by_title_and_category(
        self, title: str, category_id: int
    ) -> Optional[ProductRecord]:
        """Return the product with this natural key."""

    @abstractmethod
    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        """Return a product by surrogate id."""

    @abstractmethod
    def save_product(self, product: ProductRecord) -> ProductRecord:
        """Insert (id None) or update a product.

        Raises:
            DuplicateRecordError: If (title, category_id) is already taken
            NotFoundError: If updating an id that does not exist
        """

    @abstractmethod
    def list_products(self, category_id: int) -> List[ProductRecord]:
        """Products of one category ordered by title."""

    @abstractmethod
    def replace_reviews_for_product(
        self, product_id: int, reviews: List[ReviewRecord]
    ) -> List[ReviewRecord]:
        """Delete all reviews of a product, then insert the given ones."""

    @abstractmethod
    def get_reviews_for_product(self, product_id: int) -> List[ReviewRecord]:
        """Reviews of one product in insertion order."""

    def close(self) -> None:
        """Release connections (no-op by default)."""
