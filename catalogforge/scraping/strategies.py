"""Ordered selector strategies for categories, listings and detail pages.

Each strategy is a plain function ``(root, context) -> List[RawRecord]``
registered in a priority tuple per content type. run_strategies() walks
the tuple in order and returns the first non-empty result. Both
extractors call it on a parsed HTML tree, so the browser and static
paths share exactly the same selector patterns.

A strategy that raises is logged and counts as zero records. A single
field read that raises only loses that field.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from catalogforge.core.logging import get_logger
from catalogforge.scraping.models import ContentType, RawRecord
from catalogforge.scraping.normalizer import (
    clean_category_name,
    clean_text,
    is_category_link,
    is_display_label,
)
from catalogforge.scraping.urls import absolutize

logger = get_logger(__name__)

MAX_LINKS_SCANNED = 2000
MAX_LABEL_ROWS = 400
MAX_REVIEWS = 50
MAX_SIMILAR_PRODUCTS = 12

# (css selector, attribute) pairs; attribute None reads the element text
FieldSelectors = Sequence[Tuple[str, Optional[str]]]

NAVIGATION_CONTAINERS = (
    "nav",
    "header",
    "[role=navigation]",
    "[class*=menu]",
    "[class*=navigation]",
    "[class*=nav-]",
)

CATALOG_PATH_FRAGMENTS = (
    "/category/",
    "/categories/",
    "/collections/",
    "/genre/",
    "/genres/",
    "/department/",
    "/c/",
    "/shop/",
    "/browse/",
)

PRODUCT_CARD_CLASS = re.compile(
    r"^(product|book)([-_](card|item|tile|grid[-_]item|listing|wrapper|box))?$",
    re.IGNORECASE,
)
GENERIC_CARD_CLASS = re.compile(
    r"^(card|tile|item|listing[-_]item|grid[-_]item|search[-_]result|result[-_]item)$",
    re.IGNORECASE,
)

PRODUCT_FIELD_SELECTORS: Dict[str, FieldSelectors] = {
    "title": (
        ("[itemprop=name]", None),
        ("[class*=product-title]", None),
        ("[class*=book-title]", None),
        ("[class*=title]", None),
        ("h2", None),
        ("h3", None),
        ("h4", None),
        ("a[title]", "title"),
        ("img[alt]", "alt"),
    ),
    "price": (
        ("[itemprop=price]", "content"),
        ("[itemprop=price]", None),
        ("[data-price]", "data-price"),
        ("[class*=sale-price]", None),
        ("[class*=price]", None),
    ),
    "currency": (("[itemprop=priceCurrency]", "content"),),
    "author": (
        ("[itemprop=author]", None),
        ("[class*=author]", None),
        ("[class*=contributor]", None),
    ),
    "image": (
        ("img[data-src]", "data-src"),
        ("img[src]", "src"),
        ("source[srcset]", "srcset"),
    ),
    "url": (
        ("a[itemprop=url]", "href"),
        ("a[href*=product]", "href"),
        ("a[href]", "href"),
    ),
    "condition": (("[class*=condition]", None),),
    "format": (("[class*=format]", None), ("[class*=binding]", None)),
    "rating": (
        ("[itemprop=ratingValue]", "content"),
        ("[itemprop=ratingValue]", None),
        ("[class*=rating]", "aria-label"),
        ("[class*=rating]", "data-rating"),
        ("[class*=rating]", None),
    ),
    "review_count": (
        ("[itemprop=reviewCount]", "content"),
        ("[itemprop=reviewCount]", None),
        ("[class*=review-count]", None),
        ("[class*=reviews-count]", None),
    ),
}

DETAIL_FIELD_SELECTORS: Dict[str, FieldSelectors] = {
    **PRODUCT_FIELD_SELECTORS,
    "title": (
        ("h1[itemprop=name]", None),
        ("h1", None),
        ("[itemprop=name]", None),
        ("[class*=product-title]", None),
        ("meta[property='og:title']", "content"),
    ),
    "url": (
        ("link[rel=canonical]", "href"),
        ("meta[property='og:url']", "content"),
    ),
    "image": (
        ("[itemprop=image]", "src"),
        ("meta[property='og:image']", "content"),
        ("img[class*=cover]", "src"),
    ),
    "description": (
        ("[itemprop=description]", None),
        ("meta[name=description]", "content"),
    ),
    "synopsis": (
        ("[class*=synopsis]", None),
        ("[id*=synopsis]", None),
        ("[class*=description]", None),
    ),
}

REVIEW_FIELD_SELECTORS: Dict[str, FieldSelectors] = {
    "rating": (
        ("[itemprop=ratingValue]", "content"),
        ("[itemprop=ratingValue]", None),
        ("[class*=rating]", "aria-label"),
        ("[class*=rating]", "data-rating"),
        ("[class*=rating]", None),
        ("[class*=stars]", "aria-label"),
    ),
    "reviewer_name": (
        ("[itemprop=author]", None),
        ("[class*=reviewer]", None),
        ("[class*=author]", None),
    ),
    "review_title": (
        ("[class*=review-title]", None),
        ("[class*=title]", None),
        ("h3", None),
        ("h4", None),
    ),
    "review_text": (
        ("[itemprop=reviewBody]", None),
        ("[class*=review-body]", None),
        ("[class*=review-text]", None),
        ("[class*=content]", None),
        ("p", None),
    ),
    "review_date": (
        ("[itemprop=datePublished]", "content"),
        ("time[datetime]", "datetime"),
        ("[class*=date]", None),
    ),
    "helpful_count": (("[class*=helpful]", None),),
    "verified": (("[class*=verified]", None),),
}

REVIEW_BLOCKS = (
    "[itemprop=review]",
    "[data-review-id]",
    "[class*=review-item]",
    "[class*=review-card]",
    "li[class*=review]",
)

SIMILAR_CONTAINERS = (
    "[class*=similar]",
    "[class*=related]",
    "[class*=recommend]",
    "[class*=also-bought]",
)

# Label text (lowercase, no trailing colon) -> field name
DETAIL_LABELS: Dict[str, str] = {
    "isbn": "isbn",
    "isbn-10": "isbn",
    "isbn10": "isbn",
    "isbn 10": "isbn",
    "isbn-13": "isbn13",
    "isbn13": "isbn13",
    "isbn 13": "isbn13",
    "ean": "isbn13",
    "publisher": "publisher",
    "published by": "publisher",
    "pages": "pages",
    "number of pages": "pages",
    "page count": "pages",
    "language": "language",
    "dimensions": "dimensions",
    "size": "dimensions",
    "format": "format",
    "binding": "format",
    "condition": "condition",
    "author": "author",
    "authors": "author",
    "written by": "author",
}

_LABEL_VALUE_RE = re.compile(r"^\s*([A-Za-z][A-Za-z0-9 \-]{1,30}?)\s*:\s*(.+)$")


@dataclass
class StrategyContext:
    """Per-page inputs shared by every strategy."""

    page_url: str
    max_candidates: int = 50
    max_list_items: int = 20
    # Hosts category links may point at; empty means the page host only
    allowed_hosts: Tuple[str, ...] = ()

    def is_on_site(self, url: str) -> bool:
        hosts = self.allowed_hosts or ((urlparse(self.page_url).hostname or "").lower(),)
        return (urlparse(url).hostname or "").lower() in hosts


StrategyFunc = Callable[[Tag, StrategyContext], List[RawRecord]]


@dataclass(frozen=True)
class Strategy:
    """A named extraction recipe."""

    name: str
    run: StrategyFunc


def parse_html(html: str) -> BeautifulSoup:
    """Parse markup into a traversable tree (no script execution)."""
    return BeautifulSoup(html or "", "html.parser")


# ============================================================================
# Field reads
# ============================================================================


def _node_value(node: Tag, attr: Optional[str]) -> Optional[str]:
    if attr is None:
        return clean_text(node.get_text(" ", strip=True))
    value = node.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    if attr == "srcset" and value:
        value = value.split(",")[0].strip().split(" ")[0]
    return clean_text(value)


def read_field(element: Tag, selectors: FieldSelectors, field_name: str = "") -> Optional[str]:
    """Return the first non-empty value produced by the selector list.

    Each selector is tried independently; a selector that raises is
    logged and skipped.
    """
    for css, attr in selectors:
        try:
            for node in element.select(css, limit=3):
                value = _node_value(node, attr)
                if value:
                    return value
        except Exception as e:
            logger.debug(
                "Field selector failed", field=field_name, selector=css, error=str(e)
            )
    return None


def read_fields(element: Tag, selector_map: Dict[str, FieldSelectors]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for name, selectors in selector_map.items():
        value = read_field(element, selectors, name)
        if value:
            fields[name] = value
    return fields


def _read_candidate(element: Tag, context: StrategyContext, strategy: str) -> RawRecord:
    fields = read_fields(element, PRODUCT_FIELD_SELECTORS)

    # A card that is itself the link carries its own href and title
    if element.name == "a":
        href = element.get("href")
        if href:
            fields["url"] = href
        if "title" not in fields:
            own_title = clean_text(element.get("title")) or clean_text(
                element.get_text(" ", strip=True)
            )
            if own_title:
                fields["title"] = own_title

    if "url" in fields:
        fields["url"] = absolutize(fields["url"], context.page_url) or fields["url"]
    if "image" in fields:
        fields["image"] = absolutize(fields["image"], context.page_url) or fields["image"]

    return RawRecord(fields=fields, source_url=context.page_url, strategy=strategy)


def _class_matches(element: Tag, pattern: re.Pattern) -> bool:
    classes = element.get("class") or []
    return any(pattern.match(cls) for cls in classes)


def _outermost(elements: Iterable[Tag], limit: int) -> List[Tag]:
    """Drop elements nested inside an already selected element."""
    selected: List[Tag] = []
    selected_ids: Set[int] = set()
    for element in elements:
        if any(id(parent) in selected_ids for parent in element.parents):
            continue
        selected.append(element)
        selected_ids.add(id(element))
        if len(selected) >= limit:
            break
    return selected


def _records_from_candidates(
    candidates: Iterable[Tag], context: StrategyContext, strategy: str
) -> List[RawRecord]:
    records = []
    for element in _outermost(candidates, context.max_candidates):
        record = _read_candidate(element, context, strategy)
        if not record.has_valid_title:
            logger.debug("Dropping candidate without title", strategy=strategy)
            continue
        records.append(record)
    return records


# ============================================================================
# Category strategies
# ============================================================================


def _category_records(
    links: Iterable[Tag],
    context: StrategyContext,
    strategy: str,
    accept: Callable[[str, str], bool],
) -> List[RawRecord]:
    records: List[RawRecord] = []
    seen: Set[str] = set()
    for index, link in enumerate(links):
        if index >= MAX_LINKS_SCANNED or len(records) >= context.max_candidates:
            break
        href = link.get("href") or ""
        text = clean_text(link.get_text(" ", strip=True)) or clean_text(link.get("title"))
        if not text or not accept(text, href):
            continue
        name = clean_category_name(text)
        key = (name or "").lower()
        if not key or key in seen:
            continue
        url = absolutize(href, context.page_url)
        if url is None or not context.is_on_site(url):
            continue
        seen.add(key)
        records.append(
            RawRecord(
                fields={"name": name, "url": url},
                source_url=context.page_url,
                strategy=strategy,
            )
        )
    return records


def navigation_links(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Topical links inside navigation and header containers."""
    links: List[Tag] = []
    for container in root.select(", ".join(NAVIGATION_CONTAINERS)):
        links.extend(container.find_all("a", href=True))
    return _category_records(links, context, "navigation-links", is_category_link)


def keyword_links(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Any page link whose label passes the keyword classifier."""
    return _category_records(
        root.find_all("a", href=True), context, "keyword-links", is_category_link
    )


def catalog_path_links(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Links whose href points into a catalog path, any label."""

    def accept(text: str, href: str) -> bool:
        lowered = href.lower()
        return is_display_label(text) and any(
            fragment in lowered for fragment in CATALOG_PATH_FRAGMENTS
        )

    return _category_records(
        root.find_all("a", href=True), context, "catalog-path-links", accept
    )


# ============================================================================
# Product listing strategies
# ============================================================================


def product_cards(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Elements with product/book card classes or product microdata."""

    def is_product_card(element: Tag) -> bool:
        if not isinstance(element, Tag):
            return False
        if element.has_attr("data-product-id"):
            return True
        itemtype = element.get("itemtype") or ""
        if isinstance(itemtype, str) and re.search(r"schema\.org/(Product|Book)\b", itemtype):
            return True
        return _class_matches(element, PRODUCT_CARD_CLASS)

    return _records_from_candidates(
        root.find_all(is_product_card), context, "product-cards"
    )


def generic_cards(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Generic card, tile and listing-item containers."""
    candidates = [
        element
        for element in root.find_all(class_=True)
        if _class_matches(element, GENERIC_CARD_CLASS)
    ]
    return _records_from_candidates(candidates, context, "generic-cards")


def list_items(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Last resort: a bounded prefix of list items that contain a link."""
    items = [li for li in root.find_all("li") if li.find("a", href=True)]
    return _records_from_candidates(
        items[: context.max_list_items], context, "list-items"
    )


# ============================================================================
# Product detail strategies
# ============================================================================


def _label_key(label: str) -> Optional[str]:
    normalized = (clean_text(label) or "").lower().rstrip(":").strip()
    return DETAIL_LABELS.get(normalized)


def _labelled_values(root: Tag) -> Dict[str, str]:
    """Read "Label: value" pairs from definition lists, tables and rows."""
    values: Dict[str, str] = {}

    def store(label: str, value: Optional[str]) -> None:
        key = _label_key(label)
        value = clean_text(value)
        if key and value and key not in values:
            values[key] = value

    for dt in root.find_all("dt")[:MAX_LABEL_ROWS]:
        dd = dt.find_next_sibling("dd")
        if dd is not None:
            store(dt.get_text(" ", strip=True), dd.get_text(" ", strip=True))

    for row in root.find_all("tr")[:MAX_LABEL_ROWS]:
        cells = row.find_all(["th", "td"])
        if len(cells) >= 2:
            store(cells[0].get_text(" ", strip=True), cells[1].get_text(" ", strip=True))

    for element in root.find_all(["li", "p", "div", "span"])[:MAX_LABEL_ROWS]:
        if element.find(["li", "p", "div", "tr", "dl"]):
            continue
        match = _LABEL_VALUE_RE.match(element.get_text(" ", strip=True))
        if match:
            store(match.group(1), match.group(2))

    return values


def _reviews(root: Tag) -> List[Dict[str, str]]:
    blocks = _outermost(root.select(", ".join(REVIEW_BLOCKS)), MAX_REVIEWS)
    reviews = []
    for block in blocks:
        fields = read_fields(block, REVIEW_FIELD_SELECTORS)
        if fields.get("review_text") or fields.get("review_title"):
            reviews.append(fields)
    return reviews


def _similar_titles(root: Tag) -> List[str]:
    titles: List[str] = []
    for container in root.select(", ".join(SIMILAR_CONTAINERS)):
        for link in container.find_all("a", href=True):
            title = clean_text(link.get("title")) or clean_text(
                link.get_text(" ", strip=True)
            )
            if title and len(title) >= 4 and title not in titles:
                titles.append(title)
            if len(titles) >= MAX_SIMILAR_PRODUCTS:
                return titles
    return titles


def labelled_fields(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Detail page read from headings, microdata and labelled rows."""
    fields = read_fields(root, DETAIL_FIELD_SELECTORS)
    for key, value in _labelled_values(root).items():
        fields.setdefault(key, value)

    fields["url"] = absolutize(fields.get("url"), context.page_url) or context.page_url
    if "image" in fields:
        fields["image"] = absolutize(fields["image"], context.page_url) or fields["image"]

    record = RawRecord(
        fields=fields,
        source_url=context.page_url,
        strategy="labelled-fields",
        reviews=_reviews(root),
        similar_products=_similar_titles(root),
    )
    return [record] if record.has_valid_title else []


def _json_ld_objects(root: Tag) -> Iterable[dict]:
    for script in root.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except (TypeError, ValueError) as e:
            logger.debug("Skipping malformed JSON-LD block", error=str(e))
            continue
        stack = data if isinstance(data, list) else [data]
        while stack:
            item = stack.pop(0)
            if not isinstance(item, dict):
                continue
            if "@graph" in item and isinstance(item["@graph"], list):
                stack.extend(item["@graph"])
            yield item


def _ld_name(value: object) -> Optional[str]:
    if isinstance(value, list):
        names = [_ld_name(item) for item in value]
        return ", ".join(name for name in names if name) or None
    if isinstance(value, dict):
        return clean_text(value.get("name"))
    return clean_text(str(value)) if value is not None else None


def _ld_review(review: dict) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    rating = review.get("reviewRating")
    if isinstance(rating, dict) and rating.get("ratingValue") is not None:
        fields["rating"] = str(rating["ratingValue"])
    mapping = {
        "reviewer_name": _ld_name(review.get("author")),
        "review_title": _ld_name(review.get("name")),
        "review_text": _ld_name(review.get("reviewBody")),
        "review_date": _ld_name(review.get("datePublished")),
    }
    fields.update({key: value for key, value in mapping.items() if value})
    return fields


def json_ld(root: Tag, context: StrategyContext) -> List[RawRecord]:
    """Product or Book objects from embedded JSON-LD."""
    for item in _json_ld_objects(root):
        item_type = item.get("@type")
        types = item_type if isinstance(item_type, list) else [item_type]
        if not any(t in ("Product", "Book") for t in types):
            continue

        offers = item.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        rating = item.get("aggregateRating") or {}
        image = item.get("image")
        if isinstance(image, list):
            image = image[0] if image else None

        candidates = {
            "title": _ld_name(item.get("name")),
            "author": _ld_name(item.get("author")),
            "price": _ld_name(offers.get("price")) if isinstance(offers, dict) else None,
            "currency": _ld_name(offers.get("priceCurrency"))
            if isinstance(offers, dict)
            else None,
            "image": absolutize(_ld_name(image), context.page_url),
            "url": absolutize(_ld_name(item.get("url")), context.page_url)
            or context.page_url,
            "isbn": _ld_name(item.get("isbn")),
            "publisher": _ld_name(item.get("publisher")),
            "pages": _ld_name(item.get("numberOfPages")),
            "language": _ld_name(item.get("inLanguage")),
            "format": _ld_name(item.get("bookFormat")),
            "description": _ld_name(item.get("description")),
            "rating": _ld_name(rating.get("ratingValue")) if isinstance(rating, dict) else None,
            "review_count": _ld_name(rating.get("reviewCount"))
            if isinstance(rating, dict)
            else None,
        }
        fields = {key: value for key, value in candidates.items() if value}
        reviews = item.get("review") or []
        if isinstance(reviews, dict):
            reviews = [reviews]

        record = RawRecord(
            fields=fields,
            source_url=context.page_url,
            strategy="json-ld",
            reviews=[_ld_review(r) for r in reviews[:MAX_REVIEWS] if isinstance(r, dict)],
        )
        if record.has_valid_title:
            return [record]
    return []


# ============================================================================
# Priority order
# ============================================================================


CATEGORY_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("navigation-links", navigation_links),
    Strategy("keyword-links", keyword_links),
    Strategy("catalog-path-links", catalog_path_links),
)

PRODUCT_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("product-cards", product_cards),
    Strategy("generic-cards", generic_cards),
    Strategy("list-items", list_items),
)

DETAIL_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("labelled-fields", labelled_fields),
    Strategy("json-ld", json_ld),
)

STRATEGIES: Dict[ContentType, Tuple[Strategy, ...]] = {
    ContentType.CATEGORIES: CATEGORY_STRATEGIES,
    ContentType.PRODUCTS: PRODUCT_STRATEGIES,
    ContentType.PRODUCT_DETAIL: DETAIL_STRATEGIES,
}


def strategies_for(content_type: ContentType) -> Tuple[Strategy, ...]:
    return STRATEGIES[ContentType.parse(content_type)]


def run_strategies(
    content_type: ContentType,
    root: Tag,
    context: StrategyContext,
    strategies: Optional[Sequence[Strategy]] = None,
) -> List[RawRecord]:
    """Return the records of the first strategy that yields any.

    Args:
        content_type: Kind of page being read
        root: Parsed page tree
        context: Page URL and candidate caps
        strategies: Override of the default priority tuple

    Returns:
        Records from the first non-empty strategy, or an empty list
    """
    for strategy in strategies or strategies_for(content_type):
        try:
            records = strategy.run(root, context)
        except Exception as e:
            logger.warning(
                "Strategy raised, treating as empty",
                strategy=strategy.name,
                url=context.page_url,
                error=str(e),
            )
            continue
        logger.debug(
            "Strategy evaluated",
            strategy=strategy.name,
            url=context.page_url,
            records=len(records),
        )
        if records:
            return records
    return []
