"""Origin guard for scrape targets.

Only absolute http(s) URLs on the configured origin host, or on one of
its enumerated mirror hosts, may be scraped.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Set
from urllib.parse import urlparse

from catalogforge.core.exceptions import InvalidTargetError
from catalogforge.core.logging import get_logger
from catalogforge.scraping.urls import MAX_URL_LENGTH

logger = get_logger(__name__)
ALLOWED_SCHEMES = ("http", "https")


class ValidationResult(str, Enum):
    """Result of URL validation."""

    ALLOWED = "allowed"
    INVALID_URL = "invalid_url"
    INVALID_SCHEME = "invalid_scheme"
    BLOCKED_DOMAIN = "blocked_domain"


@dataclass
class ValidationReport:
    """Detailed validation report."""

    url: str
    result: ValidationResult
    domain: str = ""
    reason: str = ""

    @property
    def is_allowed(self) -> bool:
        """Check if URL is allowed."""
        return self.result == ValidationResult.ALLOWED


class OriginGuard:
    """Locks scraping to the origin host and its mirrors."""

    def __init__(
        self,
        base_url: str,
        mirror_domains: Optional[Iterable[str]] = None,
        allow_subdomains: bool = False,
    ) -> None:
        """Initialize guard.

        Args:
            base_url: Origin site URL; its host is always allowed
            mirror_domains: Additional hosts accepted as the same origin
            allow_subdomains: Also accept any subdomain of an allowed host
        """
        self.primary_domain = (urlparse(base_url).hostname or "").lower()
        self.allow_subdomains = allow_subdomains
        self._domains: Set[str] = {self.primary_domain}
        self._domains.update(d.strip().lower() for d in (mirror_domains or ()) if d.strip())

    @property
    def domains(self) -> Set[str]:
        return set(self._domains)

    def validate(self, url: str) -> ValidationReport:
        """Validate a URL against the origin rules.

        Args:
            url: URL to validate

        Returns:
            ValidationReport with result
        """
        if not url:
            return ValidationReport(
                url=url, result=ValidationResult.INVALID_URL, reason="Empty URL"
            )

        if len(url) > MAX_URL_LENGTH:
            return ValidationReport(
                url=url, result=ValidationResult.INVALID_URL, reason="URL too long"
            )

        try:
            parsed = urlparse(url)
            domain = (parsed.hostname or "").lower()
        except ValueError as e:
            return ValidationReport(
                url=url, result=ValidationResult.INVALID_URL, reason=str(e)
            )

        if parsed.scheme not in ALLOWED_SCHEMES:
            return ValidationReport(
                url=url,
                result=ValidationResult.INVALID_SCHEME,
                domain=domain,
                reason=f"Scheme not allowed: {parsed.scheme or '(relative URL)'}",
            )

        if not domain:
            return ValidationReport(
                url=url, result=ValidationResult.INVALID_URL, reason="Missing host"
            )

        if not self._is_allowed_domain(domain):
            return ValidationReport(
                url=url,
                result=ValidationResult.BLOCKED_DOMAIN,
                domain=domain,
                reason="Host is not the origin or a known mirror",
            )

        return ValidationReport(url=url, result=ValidationResult.ALLOWED, domain=domain)

    def is_allowed(self, url: str) -> bool:
        """Quick check if URL is allowed."""
        return self.validate(url).is_allowed

    def require(self, url: str) -> str:
        """Return url unchanged if allowed.

        Raises:
            InvalidTargetError: If the URL is not an origin URL
        """
        report = self.validate(url)
        if not report.is_allowed:
            logger.warning("Rejected scrape target", url=url, reason=report.reason)
            raise InvalidTargetError(f"Invalid scrape target {url!r}: {report.reason}")
        return url

    def _is_allowed_domain(self, domain: str) -> bool:
        if domain in self._domains:
            return True
        if self.allow_subdomains:
            return any(domain.endswith(f".{allowed}") for allowed in self._domains)
        return False
