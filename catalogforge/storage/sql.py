"""SQL Catalog Repository.

SQLAlchemy-backed storage for categories, products and reviews. Works
with any SQLAlchemy URL; SQLite gets foreign-key enforcement switched on
so review rows cascade with their product.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catalogforge.core.exceptions import DuplicateRecordError, NotFoundError
from catalogforge.core.logging import get_logger
from catalogforge.storage.base import (
    CatalogRepository,
    CategoryRecord,
    ProductRecord,
    ReviewRecord,
)
from catalogforge.storage.models import Base, Category, Product, ProductReview

logger = get_logger(__name__)

# Columns the database maintains itself
_MANAGED_COLUMNS = {"id", "created_at", "updated_at"}


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _to_record(row: Any, record_cls: Type) -> Any:
    return record_cls(**{f.name: getattr(row, f.name) for f in fields(record_cls)})


def _column_values(record: Any) -> Dict[str, Any]:
    return {
        f.name: getattr(record, f.name)
        for f in fields(record)
        if f.name not in _MANAGED_COLUMNS
    }


class SqlCatalogRepository(CatalogRepository):
    """
    Relational catalog storage.

    Each operation runs in its own session and transaction. Unique
    violations on insert surface as DuplicateRecordError; every other
    database error propagates unchanged.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        """Initialize the engine, session factory and schema."""
        if not database_url:
            raise ValueError("database_url cannot be empty")

        engine_options: Dict[str, Any] = {"echo": echo}
        if _is_memory_sqlite(database_url):
            engine_options["poolclass"] = StaticPool
            engine_options["connect_args"] = {"check_same_thread": False}
        elif database_url.startswith("sqlite"):
            engine_options["connect_args"] = {"check_same_thread": False}

        self.engine = create_engine(database_url, **engine_options)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )
        Base.metadata.create_all(bind=self.engine)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def find_category_by_name_or_slug(
        self, name: str, slug: str
    ) -> Optional[CategoryRecord]:
        with self.SessionLocal() as session:
            row = session.query(Category).filter(Category.name == name).first()
            if row is None:
                row = session.query(Category).filter(Category.slug == slug).first()
            return _to_record(row, CategoryRecord) if row else None

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        with self.SessionLocal() as session:
            row = session.get(Category, category_id)
            return _to_record(row, CategoryRecord) if row else None

    def save_category(self, category: CategoryRecord) -> CategoryRecord:
        natural_key = {"name": category.name, "slug": category.slug}
        return self._save(Category, category, "category", natural_key)

    def list_categories(self) -> List[CategoryRecord]:
        with self.SessionLocal() as session:
            rows = (
                session.query(Category)
                .order_by(Category.display_order, Category.name)
                .all()
            )
            return [_to_record(row, CategoryRecord) for row in rows]

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def find_product_by_title_and_category(
        self, title: str, category_id: int
    ) -> Optional[ProductRecord]:
        with self.SessionLocal() as session:
            row = (
                session.query(Product)
                .filter(Product.title == title, Product.category_id == category_id)
                .first()
            )
            return _to_record(row, ProductRecord) if row else None

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        with self.SessionLocal() as session:
            row = session.get(Product, product_id)
            return _to_record(row, ProductRecord) if row else None

    def save_product(self, product: ProductRecord) -> ProductRecord:
        if self.get_category(product.category_id) is None:
            raise NotFoundError(
                f"Category {product.category_id} not found",
                entity="category",
                entity_id=product.category_id,
            )
        natural_key = {"title": product.title, "category_id": product.category_id}
        return self._save(Product, product, "product", natural_key)

    def list_products(self, category_id: int) -> List[ProductRecord]:
        with self.SessionLocal() as session:
            rows = (
                session.query(Product)
                .filter(Product.category_id == category_id)
                .order_by(Product.title)
                .all()
            )
            return [_to_record(row, ProductRecord) for row in rows]

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def replace_reviews_for_product(
        self, product_id: int, reviews: List[ReviewRecord]
    ) -> List[ReviewRecord]:
        with self.SessionLocal() as session:
            if session.get(Product, product_id) is None:
                raise NotFoundError(
                    f"Product {product_id} not found", entity="product", entity_id=product_id
                )
            try:
                deleted = (
                    session.query(ProductReview)
                    .filter(ProductReview.product_id == product_id)
                    .delete(synchronize_session=False)
                )
                rows = []
                for review in reviews:
                    values = _column_values(review)
                    values["product_id"] = product_id
                    rows.append(ProductReview(**values))
                session.add_all(rows)
                session.commit()
            except Exception:
                session.rollback()
                raise

            logger.debug(
                "Replaced reviews",
                product_id=product_id,
                deleted=deleted,
                inserted=len(rows),
            )
            return [_to_record(row, ReviewRecord) for row in rows]

    def get_reviews_for_product(self, product_id: int) -> List[ReviewRecord]:
        with self.SessionLocal() as session:
            rows = (
                session.query(ProductReview)
                .filter(ProductReview.product_id == product_id)
                .order_by(ProductReview.id)
                .all()
            )
            return [_to_record(row, ReviewRecord) for row in rows]

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _save(
        self,
        model: Type,
        record: Any,
        entity: str,
        natural_key: Dict[str, Any],
    ) -> Any:
        """Insert or update one row, mapping unique violations."""
        with self.SessionLocal() as session:
            if record.id is None:
                row = model(**_column_values(record))
                session.add(row)
            else:
                row = session.get(model, record.id)
                if row is None:
                    raise NotFoundError(
                        f"{entity.capitalize()} {record.id} not found",
                        entity=entity,
                        entity_id=record.id,
                    )
                for name, value in _column_values(record).items():
                    setattr(row, name, value)

            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateRecordError(
                    f"Duplicate {entity}: {natural_key}",
                    entity=entity,
                    natural_key=natural_key,
                ) from e

            return _to_record(row, type(record))
