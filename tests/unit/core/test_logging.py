"""Tests for structured logging and the per-scrape logger."""

from __future__ import annotations

import logging

from catalogforge.core.logging import ScrapeLogger, StructuredLogger, get_logger


class TestStructuredLogger:
    """Tests for context binding and message formatting."""

    def test_get_logger_is_cached(self) -> None:
        """Test the same name returns the same instance."""
        assert get_logger("catalogforge.test.cached") is get_logger(
            "catalogforge.test.cached"
        )

    def test_fields_appended_to_message(self) -> None:
        """Test keyword fields are rendered as key=value pairs."""
        logger = StructuredLogger("catalogforge.test.fields")

        message = logger._format_message("Scrape started", url="https://x", records=3)

        assert message == "Scrape started | url=https://x | records=3"

    def test_bound_context_included(self) -> None:
        """Test bound context precedes per-call fields."""
        logger = StructuredLogger("catalogforge.test.bind")
        logger.bind(content_type="products")

        assert logger._format_message("go") == "go | content_type=products"

        logger.unbind("content_type")
        assert logger._format_message("go") == "go"


class TestScrapeLogger:
    """Tests for attempt counting and outcome records."""

    def test_attempts_counted(self, caplog) -> None:
        """Test each attempt increments the counter and is logged."""
        slog = ScrapeLogger("products", "https://example.com/c")
        slog.logger.logger.propagate = True

        with caplog.at_level(logging.INFO, logger="catalogforge.scrape"):
            slog.attempt("browser", "https://example.com/c", records=0, duration_ms=10)
            slog.attempt(
                "static",
                "https://example.com/c",
                records=4,
                duration_ms=20,
                strategy="product-cards",
            )

        assert slog.attempts == 2
        assert "strategy=product-cards" in caplog.text
        assert "records=4" in caplog.text

    def test_failed_attempt_logged_as_warning(self, caplog) -> None:
        """Test an attempt with an error is a warning."""
        slog = ScrapeLogger("categories", "https://example.com/")
        slog.logger.logger.propagate = True

        with caplog.at_level(logging.WARNING, logger="catalogforge.scrape"):
            slog.attempt("static", "https://example.com/", 0, 5.0, error="HTTPError: 503")

        assert "Strategy attempt failed" in caplog.text
        assert "error=HTTPError: 503" in caplog.text
