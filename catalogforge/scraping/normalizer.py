"""Field normalization for scraped catalog data.

Pure functions that turn raw scraped text into typed values, plus the
FieldNormalizer that applies them to RawRecord values. Nothing here
performs I/O.

Missing-field policy
--------------------
When condition, format, rating or review count cannot be read, the
default is to leave the field as None. A SyntheticFiller can be passed to
FieldNormalizer to substitute plausible values instead (demo and seed
data only); every substituted field name is listed in
ScrapedProduct.synthetic_fields.
"""

from __future__ import annotations

import random
import re
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from catalogforge.core.logging import get_logger
from catalogforge.scraping.models import (
    ContentType,
    RawRecord,
    ScrapedCategory,
    ScrapedProduct,
    ScrapedRecord,
    ScrapedReview,
)
from catalogforge.scraping.urls import absolutize

logger = get_logger(__name__)

DEFAULT_CURRENCY = "GBP"
NEUTRAL_REVIEW_RATING = 3
MIN_LABEL_LENGTH = 3
MAX_LABEL_LENGTH = 60
RATING_SCALE = 5.0

CURRENCY_SYMBOLS = {"£": "GBP", "$": "USD", "€": "EUR", "¥": "JPY", "₹": "INR"}
CURRENCY_CODES = ("GBP", "USD", "EUR", "AUD", "CAD", "NZD", "JPY", "INR")

# Topical words that make a link label look like a catalog category
CATEGORY_KEYWORDS = (
    "fiction",
    "fantasy",
    "science",
    "history",
    "historical",
    "romance",
    "mystery",
    "thriller",
    "crime",
    "horror",
    "biography",
    "biographies",
    "autobiography",
    "memoir",
    "children",
    "kids",
    "young adult",
    "teen",
    "poetry",
    "drama",
    "classic",
    "comic",
    "graphic novel",
    "cookery",
    "cooking",
    "food",
    "travel",
    "art",
    "music",
    "religion",
    "spirituality",
    "philosophy",
    "psychology",
    "self-help",
    "self help",
    "health",
    "business",
    "economics",
    "politics",
    "sport",
    "nature",
    "education",
    "academic",
    "reference",
    "language",
    "humour",
    "humor",
    "crafts",
    "hobbies",
    "garden",
    "gardening",
    "computing",
    "technology",
    "law",
    "medicine",
    "true crime",
    "war",
    "military",
    "parenting",
    "textbook",
)

# Site chrome that is never a category, whatever its URL
NAVIGATION_DENY_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\blog\s?in\b",
        r"\blog\s?out\b",
        r"\bsign\s?(in|up|out)\b",
        r"\bregister\b",
        r"\b(my\s)?account\b",
        r"\bcheckout\b",
        r"\bbasket\b",
        r"\bcart\b",
        r"\bwish\s?list\b",
        r"\bhelp\b",
        r"\bcontact\b",
        r"\bfaqs?\b",
        r"\babout\s+us\b",
        r"\bdelivery\b",
        r"\breturns?\b",
        r"\bprivacy\b",
        r"\bcookies?\b",
        r"\bterms\b",
        r"\bcareers?\b",
        r"\bgift\s?cards?\b",
        r"\bsell\b",
        r"\bnewsletter\b",
        r"\btrack\b",
        r"\bblog\b",
        r"^\s*home\s*$",
        r"\b(view|see|shop)\s+all\b",
    )
)

DENY_PATH_FRAGMENTS = (
    "/login",
    "/account",
    "/checkout",
    "/basket",
    "/cart",
    "/help",
    "/contact",
    "/wishlist",
)

CONDITION_VOCABULARY = ("Like New", "Very Good", "Good", "Well Read")
FORMAT_VOCABULARY = ("Paperback", "Hardback")
SYNTHETIC_RATING_RANGE = (3.0, 5.0)
SYNTHETIC_REVIEW_RANGE = (5, 155)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d/%m/%Y",
)

_NUMBER_RE = re.compile(r"\d[\d.,]*")
_WHITESPACE_RE = re.compile(r"\s+")


# ============================================================================
# Text
# ============================================================================


def clean_text(text: Optional[str]) -> Optional[str]:
    """Collapse whitespace; None for empty input."""
    if text is None:
        return None
    value = _WHITESPACE_RE.sub(" ", str(text)).strip()
    return value or None


def slugify(name: str) -> str:
    """URL-safe slug: lowercase, hyphen-separated, no edge hyphens.

    Idempotent: slugify(slugify(x)) == slugify(x).
    """
    value = name.lower()
    value = re.sub(r"[^a-z0-9\s-]", "", value)
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def clean_author(text: Optional[str]) -> Optional[str]:
    """Strip a leading "by", non-name characters and extra whitespace."""
    value = clean_text(text)
    if value is None:
        return None
    value = re.sub(r"^by\s*:?\s+", "", value, flags=re.IGNORECASE)
    value = re.sub(r"[^\w\s.,'&-]|[\d_]", "", value)
    return clean_text(value.strip(" ,-"))


def clean_category_name(text: Optional[str]) -> Optional[str]:
    """Display label without trailing item counts or arrow glyphs."""
    value = clean_text(text)
    if value is None:
        return None
    value = re.sub(r"\(\s*[\d,]+\s*\)\s*$", "", value)
    value = value.strip(" ›»>→|")
    return clean_text(value)


# ============================================================================
# Category classification
# ============================================================================


def is_display_label(text: Optional[str]) -> bool:
    """Length within a sane label range and not site chrome."""
    value = clean_category_name(text)
    if value is None:
        return False
    if not MIN_LABEL_LENGTH <= len(value) <= MAX_LABEL_LENGTH:
        return False
    return not any(pattern.search(value) for pattern in NAVIGATION_DENY_PATTERNS)


def has_category_keyword(text: Optional[str]) -> bool:
    value = (clean_text(text) or "").lower()
    return any(
        re.search(rf"\b{re.escape(keyword)}s?\b", value) for keyword in CATEGORY_KEYWORDS
    )


def is_category_link(text: Optional[str], href: Optional[str] = None) -> bool:
    """Accept a link as a category only if its label is topical.

    The visible text must match the topical allow-list, must not match
    the navigation deny-list and must be 3-60 characters long. An href
    into account or checkout paths is rejected as well.
    """
    if not is_display_label(text):
        return False
    if href:
        path = urlparse(href).path.lower()
        if any(path.startswith(fragment) for fragment in DENY_PATH_FRAGMENTS):
            return False
    return has_category_keyword(text)


def category_description(name: str) -> str:
    """Generated, non-authoritative category blurb."""
    return f"Browse our collection of {name} books"


# ============================================================================
# Numbers
# ============================================================================


def _to_float(number: str) -> Optional[float]:
    """Convert a digit group string, disambiguating separators."""
    number = number.rstrip(".,")
    if "." in number and "," in number:
        number = number.replace(",", "")
    elif "," in number:
        head, _, tail = number.rpartition(",")
        if len(tail) <= 2:
            number = f"{head.replace(',', '')}.{tail}"
        else:
            number = number.replace(",", "")
    elif "." in number:
        head, _, tail = number.rpartition(".")
        if len(tail) <= 2:
            number = f"{head.replace('.', '')}.{tail}"
        else:
            number = number.replace(".", "")

    try:
        return float(number)
    except ValueError:
        return None


def parse_price(text: Union[str, float, int, None]) -> Optional[float]:
    """Parse a displayed price into a positive amount (2 decimal places).

    "£12.50" -> 12.5, "1,234.56" -> 1234.56, "12,50" -> 12.5.
    Non-numeric, zero and negative values return None.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return round(float(text), 2) if text > 0 else None

    raw = str(text)
    match = _NUMBER_RE.search(raw)
    if match is None:
        return None

    prefix = raw[: match.start()]
    if "-" in prefix or "−" in prefix:
        return None

    value = _to_float(match.group(0))
    if value is None or value <= 0:
        return None
    return round(value, 2)


def detect_currency(text: Optional[str], default: str = DEFAULT_CURRENCY) -> str:
    """Currency code from a glyph or ISO code in the text."""
    if not text:
        return default
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    upper = text.upper()
    for code in CURRENCY_CODES:
        if re.search(rf"\b{code}\b", upper):
            return code
    return default


def parse_rating(text: Optional[str]) -> Optional[float]:
    """Parse a rating onto the 0-5 scale.

    Handles "4.5", "4.5 out of 5", "9/10" and "90%". Values outside
    0-5 after scaling return None.
    """
    value = clean_text(text)
    if value is None:
        return None

    match = re.search(
        r"(\d+(?:[.,]\d+)?)\s*(%|/\s*(\d+(?:\.\d+)?)|out\s+of\s+(\d+(?:\.\d+)?))?",
        value,
        flags=re.IGNORECASE,
    )
    if match is None:
        return None

    number = float(match.group(1).replace(",", "."))
    if match.group(2) == "%":
        number = number / 100 * RATING_SCALE
    else:
        scale = match.group(3) or match.group(4)
        if scale and float(scale) > 0:
            number = number / float(scale) * RATING_SCALE

    if not 0 <= number <= RATING_SCALE:
        return None
    return round(number, 1)


def parse_count(text: Optional[str]) -> Optional[int]:
    """Non-negative integer from text such as "(1,234 reviews)"."""
    value = clean_text(text)
    if value is None:
        return None
    match = _NUMBER_RE.search(value)
    if match is None:
        return None
    digits = re.sub(r"[.,]", "", match.group(0))
    try:
        return int(digits)
    except ValueError:
        return None


def parse_review_rating(text: Optional[str]) -> int:
    """Whole-star review rating in 1-5, neutral when unparsable."""
    rating = parse_rating(text)
    if rating is None:
        return NEUTRAL_REVIEW_RATING
    return max(1, min(5, int(round(rating))))


def parse_date(text: Optional[str]) -> Optional[date]:
    value = clean_text(text)
    if value is None:
        return None
    value = re.sub(r"^(reviewed|posted)\s+(on\s+)?", "", value, flags=re.IGNORECASE)
    value = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", value)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def normalize_isbn(text: Optional[str]) -> Optional[str]:
    """Digits (and a trailing X) of a 10- or 13-character ISBN."""
    if not text:
        return None
    value = re.sub(r"[^0-9Xx]", "", text).upper()
    if len(value) in (10, 13):
        return value
    return None


def is_verified(text: Optional[str]) -> bool:
    value = (clean_text(text) or "").lower()
    return "verified" in value and "unverified" not in value


# ============================================================================
# Synthetic fill
# ============================================================================


class SyntheticFiller:
    """Substitutes plausible values for unreadable listing fields.

    Only used when scraping.fill_missing is enabled. Seedable so that
    demo data is reproducible.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)

    def fill(self, product: ScrapedProduct) -> ScrapedProduct:
        if product.condition is None:
            product.condition = self._random.choice(CONDITION_VOCABULARY)
            product.synthetic_fields.append("condition")
        if product.format is None:
            product.format = self._random.choice(FORMAT_VOCABULARY)
            product.synthetic_fields.append("format")
        if product.rating is None:
            low, high = SYNTHETIC_RATING_RANGE
            product.rating = round(self._random.uniform(low, high), 1)
            product.synthetic_fields.append("rating")
        if product.review_count is None:
            low, high = SYNTHETIC_REVIEW_RANGE
            product.review_count = self._random.randint(low, high)
            product.synthetic_fields.append("review_count")
        return product


# ============================================================================
# Record normalization
# ============================================================================


class FieldNormalizer:
    """Shapes RawRecord values into typed catalog records."""

    def __init__(
        self,
        currency: str = DEFAULT_CURRENCY,
        filler: Optional[SyntheticFiller] = None,
    ) -> None:
        self.currency = currency
        self.filler = filler

    def normalize(
        self,
        content_type: ContentType,
        records: Iterable[RawRecord],
        page_url: str,
    ) -> List[ScrapedRecord]:
        """Normalize every raw record, dropping unusable ones.

        Categories are de-duplicated by slug, products by source URL and
        title, keeping the first occurrence.
        """
        result: List[ScrapedRecord] = []
        seen = set()
        for raw in records:
            if content_type == ContentType.CATEGORIES:
                record = self.category(raw, page_url)
                key = record.slug if record else None
            else:
                record = self.product(raw, page_url)
                key = (record.source_url, record.title.lower()) if record else None
            if record is None or key in seen:
                continue
            seen.add(key)
            result.append(record)
        return result

    def category(self, raw: RawRecord, page_url: str) -> Optional[ScrapedCategory]:
        name = clean_category_name(raw.get("name"))
        if name is None:
            return None
        slug = slugify(name)
        if not slug:
            return None
        return ScrapedCategory(
            name=name,
            slug=slug,
            source_url=absolutize(raw.get("url"), page_url) or page_url,
            description=category_description(name),
        )

    def product(self, raw: RawRecord, page_url: str) -> Optional[ScrapedProduct]:
        if not raw.has_valid_title:
            return None

        price_text = raw.get("price")
        currency_text = raw.get("currency") or price_text
        product = ScrapedProduct(
            title=clean_text(raw.title) or "",
            source_url=absolutize(raw.get("url"), page_url) or raw.source_url or page_url,
            author=clean_author(raw.get("author")),
            price=parse_price(price_text),
            currency=detect_currency(currency_text, self.currency),
            image_url=absolutize(raw.get("image"), page_url),
            condition=clean_text(raw.get("condition")),
            format=clean_text(raw.get("format")),
            rating=parse_rating(raw.get("rating")),
            review_count=parse_count(raw.get("review_count")),
            description=clean_text(raw.get("description")),
            isbn=normalize_isbn(raw.get("isbn")),
            isbn13=normalize_isbn(raw.get("isbn13")),
            publisher=clean_text(raw.get("publisher")),
            pages=parse_count(raw.get("pages")),
            language=clean_text(raw.get("language")),
            dimensions=clean_text(raw.get("dimensions")),
            synopsis=clean_text(raw.get("synopsis")),
            similar_products=[
                title for title in (clean_text(t) for t in raw.similar_products) if title
            ],
            reviews=[self.review(fields) for fields in raw.reviews],
        )

        # An ISBN-13 read into the isbn slot belongs in isbn13
        if product.isbn and len(product.isbn) == 13 and not product.isbn13:
            product.isbn13, product.isbn = product.isbn, None

        if self.filler is not None:
            self.filler.fill(product)
        return product

    def review(self, fields: Dict[str, str]) -> ScrapedReview:
        def get(name: str) -> Optional[str]:
            return clean_text(fields.get(name))

        return ScrapedReview(
            rating=parse_review_rating(get("rating")),
            reviewer_name=clean_author(get("reviewer_name")),
            review_title=get("review_title"),
            review_text=get("review_text"),
            is_verified_purchase=is_verified(get("verified")),
            review_date=parse_date(get("review_date")),
            helpful_count=parse_count(get("helpful_count")),
        )
