"""Scraping API Endpoints.

Thin layer over ScrapeService: validates path input, runs the scrape and
translates domain errors into HTTP error payloads.

Endpoints:
- POST /v1/scraping/categories - Scrape and store the category list
- POST /v1/scraping/products/{category_id} - Scrape and store one category's products
- POST /v1/scraping/products/{product_id}/detail - Scrape one product's detail page
- GET /v1/scraping/test - Readiness probe
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Path, Request
from pydantic import BaseModel, Field

from catalogforge.core.exceptions import (
    CatalogForgeError,
    InvalidTargetError,
    NotFoundError,
    ScrapeFailedError,
    error_details,
)
from catalogforge.core.logging import get_logger
from catalogforge.reconcile.service import ScrapeOutcome, ScrapeService
from catalogforge.scraping.models import ContentType

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/scraping", tags=["scraping"])

# =============================================================================
# RESPONSE MODELS
# =============================================================================


class ScrapeResponse(BaseModel):
    """Outcome of a scrape request."""

    success: bool = Field(..., description="False only if nothing could be saved")
    message: str = Field(..., description="Human-readable summary")
    content_type: str = Field(..., description="categories, products or productDetail")
    data: List[Dict[str, Any]] = Field(
        default_factory=list, description="Persisted records"
    )
    errors: List[str] = Field(
        default_factory=list, description="Per-item persistence errors"
    )


class ProbeResponse(BaseModel):
    """Readiness probe response."""

    message: str = Field(..., description="Status message")
    timestamp: str = Field(..., description="ISO 8601 timestamp")


# =============================================================================
# HELPERS
# =============================================================================


def get_service(request: Request) -> ScrapeService:
    """ScrapeService created by create_app()."""
    return request.app.state.scrape_service


def _status_for(exc: CatalogForgeError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InvalidTargetError):
        return 400
    if isinstance(exc, ScrapeFailedError):
        return 502
    return 500


async def _run(
    service: ScrapeService, content_type: ContentType, target_id: Optional[int] = None
) -> ScrapeResponse:
    try:
        outcome: ScrapeOutcome = await service.trigger_scrape(content_type, target_id)
    except CatalogForgeError as e:
        status_code = _status_for(e)
        logger.warning(
            "Scrape request failed",
            content_type=content_type.value,
            target_id=target_id,
            status=status_code,
            error=str(e),
        )
        raise HTTPException(status_code=status_code, detail=error_details(e)) from e

    return ScrapeResponse(**outcome.to_dict())


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post("/categories", response_model=ScrapeResponse)
async def scrape_categories(request: Request) -> ScrapeResponse:
    """Scrape the origin's category list and upsert it."""
    return await _run(get_service(request), ContentType.CATEGORIES)


@router.post("/products/{category_id}", response_model=ScrapeResponse)
async def scrape_products(
    request: Request,
    category_id: int = Path(..., ge=1, description="Stored category id"),
) -> ScrapeResponse:
    """Scrape one category's product listing and upsert the products.

    Raises:
        HTTPException: 404 for an unknown category, 502 if nothing was extracted
    """
    return await _run(get_service(request), ContentType.PRODUCTS, category_id)


@router.post("/products/{product_id}/detail", response_model=ScrapeResponse)
async def scrape_product_detail(
    request: Request,
    product_id: int = Path(..., ge=1, description="Stored product id"),
) -> ScrapeResponse:
    """Scrape a product's detail page, merging fields and replacing reviews."""
    return await _run(get_service(request), ContentType.PRODUCT_DETAIL, product_id)


@router.get("/test", response_model=ProbeResponse)
async def scraping_test() -> ProbeResponse:
    """Readiness probe for the scraping routes."""
    return ProbeResponse(
        message="Scraping service is running",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
