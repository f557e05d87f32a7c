"""
Structured Logging for CatalogForge.

This module provides a logging infrastructure that supports context binding,
a stage-aware logger for scrape orchestration, and consistent formatting
across the entire application.

Architecture Context
--------------------
Logging is a Core layer service used by every module in the system. All modules
should import get_logger() from here rather than using Python's logging directly:

    # Good - uses CatalogForge's structured logging
    from catalogforge.core.logging import get_logger
    logger = get_logger(__name__)

    # Avoid - bypasses our structure
    import logging
    logger = logging.getLogger(__name__)

Logger Types
------------
**StructuredLogger**
    Base logger with context binding support. Allows attaching key-value pairs
    that appear in all subsequent log messages:

        logger = get_logger(__name__)
        logger.bind(content_type="products")
        logger.info("Scrape started")  # includes content_type

**ScrapeLogger**
    Specialized for one orchestration call. Records every attempted strategy
    with its record count and timing, then the final outcome:

        slog = ScrapeLogger("products", url)
        slog.attempt("browser", "product-cards", records=0, duration_ms=812.0)
        slog.finish(success=True, records=24)

Module-Level Factory
--------------------
The get_logger() function provides cached logger instances:

    logger = get_logger("catalogforge.scraping.orchestrator")

Loggers are cached by name, so multiple calls return the same instance.
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True


class StructuredLogger:
    """
    Structured logger with context support.

    Provides consistent logging across the application with
    support for structured fields and context tracking.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or _ConfigHolder.get_config()
        self._context: dict[str, Any] = {}
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # Remove existing handlers
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            self.config.format,
            datefmt=self.config.date_format,
        )

        if self.config.console:
            from rich.logging import RichHandler

            console_handler = RichHandler(
                show_time=True,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            )
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Attach context fields to every subsequent message."""
        self._context.update(context)
        return self

    def unbind(self, *keys: str) -> None:
        """Remove previously bound context fields."""
        for key in keys:
            self._context.pop(key, None)

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Format message with context and extra fields."""
        fields = {**self._context, **kwargs}
        if fields:
            field_str = " | ".join(f"{k}={v}" for k, v in fields.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


# Module-level logger factory
_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration.

    Returns:
        Configured StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config)
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Loggers created before this call are reconfigured in place.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(
        level=level,
        file_path=log_file,
        console=console,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.config = config
        structured._setup_logger()


class _ConfigHolder:
    """Holds default logging configuration."""

    _config: LogConfig = LogConfig()

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


class ScrapeLogger:
    """
    Specialized logger for a single orchestration call.

    Emits one line per attempted strategy and a closing outcome line.
    """

    def __init__(self, content_type: str, url: str) -> None:
        self.content_type = content_type
        self.url = url
        self.logger = get_logger("catalogforge.scrape")
        self.attempts = 0
        self._started = datetime.now()

    def attempt(
        self,
        extractor: str,
        target: str,
        records: int,
        duration_ms: float,
        error: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> None:
        """Record one extractor attempt against one URL."""
        self.attempts += 1
        fields: dict[str, Any] = {
            "content_type": self.content_type,
            "url": target,
            "extractor": extractor,
            "strategy": strategy or "-",
            "records": records,
            "duration_ms": f"{duration_ms:.0f}",
        }
        if error:
            fields["error"] = error
            self.logger.warning("Strategy attempt failed", **fields)
        else:
            self.logger.info("Strategy attempt", **fields)

    def cache_hit(self) -> None:
        """Record that the result was served from cache."""
        self.logger.debug(
            "Cache hit", content_type=self.content_type, url=self.url
        )

    def finish(self, success: bool, records: int = 0) -> None:
        """Record the outcome of the orchestration call."""
        duration = (datetime.now() - self._started).total_seconds()
        if success:
            self.logger.info(
                "Scrape completed",
                content_type=self.content_type,
                url=self.url,
                records=records,
                attempts=self.attempts,
                duration_sec=f"{duration:.2f}",
            )
        else:
            self.logger.error(
                "Scrape failed",
                content_type=self.content_type,
                url=self.url,
                attempts=self.attempts,
                duration_sec=f"{duration:.2f}",
            )
