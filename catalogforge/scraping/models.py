"""Data model for extracted catalog records.

Extractors produce RawRecord values (untyped strings keyed by field name).
The normalizer turns those into ScrapedCategory / ScrapedProduct /
ScrapedReview value objects. None of these carry storage identity; the
reconciler is the only component that assigns or looks up primary keys.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

MIN_TITLE_LENGTH = 4


class ContentType(str, Enum):
    """Kinds of page the pipeline knows how to extract."""

    CATEGORIES = "categories"
    PRODUCTS = "products"
    PRODUCT_DETAIL = "productDetail"

    @classmethod
    def parse(cls, value: Union[str, "ContentType"]) -> "ContentType":
        """Accept either the enum or its wire value."""
        if isinstance(value, ContentType):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"Unknown content type: {value!r}")


@dataclass
class RawRecord:
    """Unnormalized fields read from one page element.

    `fields` holds the first non-empty text found for each field name;
    missing fields are simply absent. `reviews` holds one field dict per
    review block for product-detail pages.
    """

    fields: Dict[str, str] = field(default_factory=dict)
    source_url: str = ""
    strategy: str = ""
    reviews: List[Dict[str, str]] = field(default_factory=list)
    similar_products: List[str] = field(default_factory=list)

    def get(self, name: str) -> Optional[str]:
        """Return a field value, or None when it was not read."""
        value = self.fields.get(name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def title(self) -> Optional[str]:
        return self.get("title")

    @property
    def has_valid_title(self) -> bool:
        """True when the title is long enough to identify a product."""
        title = self.title
        return title is not None and len(" ".join(title.split())) >= MIN_TITLE_LENGTH


@dataclass
class ScrapedCategory:
    """A catalog category as extracted from the origin site."""

    name: str
    slug: str
    source_url: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapedReview:
    """One customer review from a product detail page."""

    rating: int = 3
    reviewer_name: Optional[str] = None
    review_title: Optional[str] = None
    review_text: Optional[str] = None
    is_verified_purchase: bool = False
    review_date: Optional[date] = None
    helpful_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["review_date"] = self.review_date.isoformat() if self.review_date else None
        return data


@dataclass
class ScrapedProduct:
    """A product (book) as extracted from a listing or detail page.

    The extended bundle (isbn through reviews) is only populated from
    product-detail pages.
    """

    title: str
    source_url: str = ""
    author: Optional[str] = None
    price: Optional[float] = None
    currency: str = "GBP"
    image_url: Optional[str] = None
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
    reviews: List[ScrapedReview] = field(default_factory=list)
    # Names of fields filled with synthetic values instead of page data
    synthetic_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reviews"] = [review.to_dict() for review in self.reviews]
        return data


ScrapedRecord = Union[ScrapedCategory, ScrapedProduct]
