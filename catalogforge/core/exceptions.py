"""
Centralized Exception Hierarchy for CatalogForge.

All exceptions inherit from CatalogForgeError for easy catching. Each one
carries an error_code for documentation lookup, an explanation of why it
happened and a list of actionable fixes, so the API and CLI layers can
render the same helpful payload.

Exception Hierarchy
-------------------
    CatalogForgeError (base)
    ├── ScrapeError
    │   ├── ScrapeFailedError
    │   ├── ExtractorUnavailableError
    │   └── InvalidTargetError
    ├── StorageError
    │   └── DuplicateRecordError
    ├── NotFoundError
    └── ValidationError
        └── ConfigValidationError

Usage
-----
    from catalogforge.core.exceptions import ScrapeFailedError

    try:
        records = await orchestrator.scrape(ContentType.PRODUCTS, url)
    except ScrapeFailedError as e:
        logger.error(f"Nothing extracted after {e.attempts} attempts")
"""

import builtins
import re
from typing import Any, List, Optional, Sequence, Tuple


def sanitize_message(message: str) -> str:
    """Mask credentials and tokens that may appear inside URLs or headers.

    Args:
        message: Original error message

    Returns:
        Message with sensitive fragments replaced
    """
    if not message:
        return message

    patterns = [
        # Basic auth embedded in URLs (database URLs, proxies)
        (r"://[^:/\s]+:[^@/\s]+@", "://<user>:<pass>@"),
        # Bearer tokens
        (r"Bearer\s+[a-zA-Z0-9_.-]+", "Bearer <token>"),
        # Long hex strings (session ids, keys)
        (r"[a-fA-F0-9]{40,}", "<hash>"),
    ]

    result = message
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)
    return result


def get_root_cause(exc: BaseException) -> BaseException:
    """Extract the root cause from a chain of exceptions.

    Args:
        exc: Exception to analyze

    Returns:
        Root cause exception (may be the same as input)
    """
    seen = set()
    current = exc

    while current is not None:
        if id(current) in seen:
            break
        seen.add(id(current))

        # Prefer explicit cause over implicit context
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__context__ is not None:
            current = current.__context__
        else:
            break

    return current


class CatalogForgeError(Exception):
    """
    Base exception for all CatalogForge errors.

    Example
    -------
        try:
            service.trigger_scrape(ContentType.CATEGORIES)
        except CatalogForgeError as e:
            logger.error(f"Scrape failed: {e}")
            print(f"Fix: {e.how_to_fix}")
    """

    error_code: str = "CF-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(sanitize_message(message))

        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix

    def get_root_cause(self) -> BaseException:
        """Get the root cause of this exception chain."""
        return get_root_cause(self)


# ============================================================================
# Scrape Exceptions
# ============================================================================


class ScrapeError(CatalogForgeError):
    """Base exception for extraction and orchestration errors."""

    error_code = "CF-SCRAPE-000"
    why_it_happened = "Extracting data from the origin site failed"
    how_to_fix = ["Check network access to the origin site and try again"]


class ScrapeFailedError(ScrapeError):
    """
    Raised when every extractor and alternate URL yielded zero records.

    Attributes
    ----------
    content_type : str
        The content type that was requested
    url : str
        The primary target URL
    attempts : int
        Number of extractor attempts made before giving up
    urls_tried : tuple of str
        Every URL the orchestrator attempted, in order
    """

    error_code = "CF-SCRAPE-001"
    why_it_happened = (
        "No extraction strategy found any usable records. The page layout "
        "may have changed, the site may be blocking automated access, or "
        "the page may be empty"
    )
    how_to_fix = [
        "Open the target URL in a browser and confirm it lists items",
        "Enable the browser extractor if only the static one ran",
        "Retry later in case the origin site is temporarily unavailable",
    ]

    def __init__(
        self,
        message: str,
        content_type: str = "",
        url: str = "",
        attempts: int = 0,
        urls_tried: Sequence[str] = (),
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            error_code=error_code,
            why_it_happened=why_it_happened,
            how_to_fix=how_to_fix,
        )
        self.content_type = content_type
        self.url = url
        self.attempts = attempts
        self.urls_tried: Tuple[str, ...] = tuple(urls_tried)


class ExtractorUnavailableError(ScrapeError):
    """Raised when an extractor's runtime cannot be started."""

    error_code = "CF-SCRAPE-002"
    why_it_happened = (
        "The headless browser runtime is not installed or failed to launch"
    )
    how_to_fix = [
        "Install browsers with: playwright install chromium",
        "Set scraping.browser_enabled: false to use static HTML only",
    ]


class InvalidTargetError(ScrapeError):
    """Raised for a target URL outside the origin or an unknown content type."""

    error_code = "CF-SCRAPE-003"
    why_it_happened = (
        "The requested URL is not an absolute URL on the configured origin "
        "or one of its mirrors"
    )
    how_to_fix = [
        "Use an absolute https URL on the configured base_url domain",
        "Add the domain to scraping.mirror_domains if it is a known mirror",
    ]


# ============================================================================
# Storage Exceptions
# ============================================================================


class StorageError(CatalogForgeError):
    """Raised when storage operations fail."""

    error_code = "CF-STOR-000"
    why_it_happened = (
        "A storage operation failed. The database may be unreachable, "
        "locked by another process, or its schema may be out of date"
    )
    how_to_fix = [
        "Check storage.database_url and that the database is reachable",
        "Ensure the schema was created by the current version",
    ]


class DuplicateRecordError(StorageError):
    """
    Raised by a repository when an insert violates a uniqueness constraint.

    Attributes
    ----------
    entity : str
        The entity type ("category", "product")
    natural_key : dict
        The natural-key fields of the rejected row
    """

    error_code = "CF-STOR-001"
    why_it_happened = (
        "A row with the same natural key already exists, usually because "
        "another caller inserted it concurrently"
    )
    how_to_fix = ["Re-read the row by its natural key instead of inserting"]

    def __init__(
        self,
        message: str,
        entity: str = "",
        natural_key: Optional[dict] = None,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            error_code=error_code,
            why_it_happened=why_it_happened,
            how_to_fix=how_to_fix,
        )
        self.entity = entity
        self.natural_key = dict(natural_key or {})


# ============================================================================
# Domain Exceptions
# ============================================================================


class NotFoundError(CatalogForgeError):
    """Raised when a category or product id does not exist."""

    error_code = "CF-NF-001"
    why_it_happened = "The requested record does not exist in storage"
    how_to_fix = [
        "List categories first and use an existing id",
        "Scrape categories before scraping their products",
    ]

    def __init__(
        self,
        message: str,
        entity: str = "",
        entity_id: Any = None,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            error_code=error_code,
            why_it_happened=why_it_happened,
            how_to_fix=how_to_fix,
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(CatalogForgeError):
    """Raised when input validation fails."""

    error_code = "CF-VAL-000"
    why_it_happened = "The provided input did not pass validation"
    how_to_fix = ["Check the error message for the expected format"]


class ConfigValidationError(ValidationError):
    """
    Raised when configuration values are invalid.

    Attributes
    ----------
    field : str
        Dotted path of the offending configuration field
    """

    error_code = "CF-CFG-001"
    why_it_happened = "A configuration value is outside its allowed range"
    how_to_fix = [
        "Check your catalogforge.yaml configuration file",
        "Check CATALOGFORGE_* environment variables",
    ]

    def __init__(
        self,
        message: str,
        field: str = "",
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            error_code=error_code,
            why_it_happened=why_it_happened,
            how_to_fix=how_to_fix,
        )
        self.field = field


# ============================================================================
# Error Info Lookup
# ============================================================================


STANDARD_ERROR_INFO: dict[type, dict[str, Any]] = {
    builtins.ConnectionError: {
        "error_code": "CF-CONN-001",
        "why_it_happened": "Could not establish a network connection",
        "how_to_fix": [
            "Check your internet connection",
            "Verify the origin site is reachable",
        ],
    },
    builtins.TimeoutError: {
        "error_code": "CF-INFRA-002",
        "why_it_happened": "The operation took too long and was terminated",
        "how_to_fix": [
            "Try again in a few minutes",
            "Increase scraping.orchestration_timeout_sec",
        ],
    },
    ModuleNotFoundError: {
        "error_code": "CF-DEP-001",
        "why_it_happened": "A required Python package is not installed",
        "how_to_fix": ["Install the missing package: pip install <package-name>"],
    },
    ValueError: {
        "error_code": "CF-VAL-002",
        "why_it_happened": "An invalid value was provided",
        "how_to_fix": ["Check the error message for the expected value format"],
    },
}


def get_error_info(exc: BaseException) -> dict[str, Any]:
    """Get helpful error information for any exception.

    Args:
        exc: Exception to get info for

    Returns:
        Dict with error_code, why_it_happened, how_to_fix
    """
    if isinstance(exc, CatalogForgeError):
        return {
            "error_code": exc.error_code,
            "why_it_happened": exc.why_it_happened,
            "how_to_fix": exc.how_to_fix,
        }

    exc_type = type(exc)
    if exc_type in STANDARD_ERROR_INFO:
        return STANDARD_ERROR_INFO[exc_type]

    for parent_type, info in STANDARD_ERROR_INFO.items():
        if isinstance(exc, parent_type):
            return info

    return {
        "error_code": "CF-ERR-999",
        "why_it_happened": "An unexpected error occurred",
        "how_to_fix": [
            "Check the error message for details",
            "Report the issue if it persists",
        ],
    }


def error_details(exc: BaseException) -> dict[str, Any]:
    """Render an exception as the payload shared by the API and CLI."""
    info = get_error_info(exc)
    return {
        "error_code": info["error_code"],
        "message": sanitize_message(str(exc)),
        "why_it_happened": info["why_it_happened"],
        "how_to_fix": list(info["how_to_fix"]),
    }
