"""SQLAlchemy models for the catalog schema.

Categories are unique on name and on slug, products on (title,
category_id). Reviews reference their product with cascade delete.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Category(Base):
    """Catalog category (book genre)."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    source_url = Column(String(2048), nullable=True)

    # Collaborator-owned hierarchy and display fields
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    icon = Column(String(100), nullable=True)
    color = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship(
        "Product", back_populates="category", passive_deletes=True
    )


class Product(Base):
    """A book listed in one category."""

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("title", "category_id", name="uq_products_title_category"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author = Column(String(255), nullable=True)
    price = Column(Float, nullable=True)
    currency = Column(String(3), default="GBP", nullable=False)
    image_url = Column(String(2048), nullable=True)
    source_url = Column(String(2048), nullable=True)
    condition = Column(String(50), nullable=True)
    format = Column(String(50), nullable=True)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    # Detail-page bundle
    isbn = Column(String(20), nullable=True)
    isbn13 = Column(String(20), nullable=True)
    publisher = Column(String(255), nullable=True)
    pages = Column(Integer, nullable=True)
    language = Column(String(50), nullable=True)
    dimensions = Column(String(100), nullable=True)
    synopsis = Column(Text, nullable=True)
    similar_products = Column(JSON, default=list)
    synthetic_fields = Column(JSON, default=list)

    is_available = Column(Boolean, default=True, nullable=False)
    last_scraped_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="products")
    reviews = relationship(
        "ProductReview",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductReview.id",
    )


class ProductReview(Base):
    """Customer review of one product."""

    __tablename__ = "product_reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating = Column(Integer, default=3, nullable=False)
    reviewer_name = Column(String(255), nullable=True)
    review_title = Column(String(500), nullable=True)
    review_text = Column(Text, nullable=True)
    is_verified_purchase = Column(Boolean, default=False, nullable=False)
    review_date = Column(Date, nullable=True)
    helpful_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="reviews")
