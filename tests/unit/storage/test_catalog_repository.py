"""Contract tests run against every catalog repository backend.

The `repository` fixture is parametrized over the memory and SQLite
in-memory backends, so each test here runs twice.
"""

from __future__ import annotations

from datetime import date

import pytest

from catalogforge.core.exceptions import DuplicateRecordError, NotFoundError
from catalogforge.storage.base import CategoryRecord, ProductRecord, ReviewRecord


def add_category(repository, name: str = "Fiction", slug: str = "fiction") -> CategoryRecord:
    return repository.save_category(CategoryRecord(name=name, slug=slug))


# Categories


class TestCategories:
    """Tests for category storage."""

    def test_insert_assigns_id_and_timestamps(self, repository) -> None:
        """Test inserted categories get an id and created_at."""
        saved = add_category(repository)

        assert saved.id is not None
        assert saved.created_at is not None
        assert repository.get_category(saved.id).name == "Fiction"

    def test_find_by_name_or_slug(self, repository) -> None:
        """Test lookup matches on either natural key."""
        saved = add_category(repository)

        assert repository.find_category_by_name_or_slug("Fiction", "other").id == saved.id
        assert repository.find_category_by_name_or_slug("Other", "fiction").id == saved.id
        assert repository.find_category_by_name_or_slug("Other", "other") is None

    @pytest.mark.parametrize(
        "name, slug", [("Fiction", "fiction-2"), ("Fiction Two", "fiction")]
    )
    def test_duplicate_name_or_slug(self, repository, name: str, slug: str) -> None:
        """Test a second category with the same name or slug is rejected."""
        add_category(repository)

        with pytest.raises(DuplicateRecordError) as exc_info:
            add_category(repository, name, slug)

        assert exc_info.value.entity == "category"

    def test_update_existing(self, repository) -> None:
        """Test saving a record with an id updates in place."""
        saved = add_category(repository)
        saved.source_url = "https://www.worldofbooks.com/en-gb/category/fiction"

        repository.save_category(saved)

        assert repository.get_category(saved.id).source_url == saved.source_url
        assert len(repository.list_categories()) == 1

    def test_update_missing_id(self, repository) -> None:
        """Test updating an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            repository.save_category(CategoryRecord(name="Ghost", slug="ghost", id=999))

    def test_list_ordered(self, repository) -> None:
        """Test categories list by display order, then name."""
        add_category(repository, "Science Fiction", "science-fiction")
        add_category(repository, "Crime", "crime")
        repository.save_category(
            CategoryRecord(name="Zoology", slug="zoology", display_order=-1)
        )

        names = [c.name for c in repository.list_categories()]

        assert names == ["Zoology", "Crime", "Science Fiction"]


# Products


class TestProducts:
    """Tests for product storage."""

    def test_insert_and_lookup(self, repository) -> None:
        """Test products are found by (title, category_id)."""
        category = add_category(repository)
        saved = repository.save_product(
            ProductRecord(
                title="Dune",
                category_id=category.id,
                price=6.5,
                similar_products=["Dune Messiah"],
            )
        )

        found = repository.find_product_by_title_and_category("Dune", category.id)
        assert found.id == saved.id
        assert found.price == 6.5
        assert found.similar_products == ["Dune Messiah"]

    def test_same_title_in_two_categories(self, repository) -> None:
        """Test the natural key includes the category."""
        fiction = add_category(repository)
        classics = add_category(repository, "Classics", "classics")

        repository.save_product(ProductRecord(title="Emma", category_id=fiction.id))
        repository.save_product(ProductRecord(title="Emma", category_id=classics.id))

        assert len(repository.list_products(fiction.id)) == 1
        assert len(repository.list_products(classics.id)) == 1

    def test_duplicate_product(self, repository) -> None:
        """Test a second product with the same natural key is rejected."""
        category = add_category(repository)
        repository.save_product(ProductRecord(title="Dune", category_id=category.id))

        with pytest.raises(DuplicateRecordError) as exc_info:
            repository.save_product(ProductRecord(title="Dune", category_id=category.id))

        assert exc_info.value.natural_key == {"title": "Dune", "category_id": category.id}

    def test_unknown_category(self, repository) -> None:
        """Test products require an existing category."""
        with pytest.raises(NotFoundError):
            repository.save_product(ProductRecord(title="Orphan", category_id=404))

    def test_returned_records_are_detached(self, repository) -> None:
        """Test mutating a returned record does not change storage."""
        category = add_category(repository)
        saved = repository.save_product(ProductRecord(title="Dune", category_id=category.id))

        saved.price = 99.0

        assert repository.get_product(saved.id).price is None


# Reviews


class TestReviews:
    """Tests for review replacement."""

    def test_replace_deletes_previous_set(self, repository) -> None:
        """Test replacement removes every earlier review."""
        category = add_category(repository)
        product = repository.save_product(ProductRecord(title="Dune", category_id=category.id))
        repository.replace_reviews_for_product(
            product.id,
            [ReviewRecord(product_id=product.id, rating=2, review_text="Slow")],
        )

        inserted = repository.replace_reviews_for_product(
            product.id,
            [
                ReviewRecord(product_id=product.id, rating=5, review_date=date(2024, 3, 1)),
                ReviewRecord(product_id=product.id, rating=4),
            ],
        )

        stored = repository.get_reviews_for_product(product.id)
        assert [r.rating for r in stored] == [5, 4]
        assert [r.id for r in stored] == [r.id for r in inserted]
        assert stored[0].review_date == date(2024, 3, 1)

    def test_replace_with_empty_set(self, repository) -> None:
        """Test an empty set clears the product's reviews."""
        category = add_category(repository)
        product = repository.save_product(ProductRecord(title="Dune", category_id=category.id))
        repository.replace_reviews_for_product(
            product.id, [ReviewRecord(product_id=product.id)]
        )

        assert repository.replace_reviews_for_product(product.id, []) == []
        assert repository.get_reviews_for_product(product.id) == []

    def test_reviews_scoped_to_product(self, repository) -> None:
        """Test replacing one product's reviews leaves others alone."""
        category = add_category(repository)
        dune = repository.save_product(ProductRecord(title="Dune", category_id=category.id))
        emma = repository.save_product(ProductRecord(title="Emma", category_id=category.id))
        repository.replace_reviews_for_product(emma.id, [ReviewRecord(product_id=emma.id)])

        repository.replace_reviews_for_product(dune.id, [])

        assert len(repository.get_reviews_for_product(emma.id)) == 1

    def test_unknown_product(self, repository) -> None:
        """Test replacing reviews of a missing product raises."""
        with pytest.raises(NotFoundError):
            repository.replace_reviews_for_product(404, [])
