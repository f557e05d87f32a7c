"""
CatalogForge API application.

create_app() wires configuration, repository, result cache and scrape
service into a FastAPI app. The cache and repository live for the
lifetime of the app and are shared by every request.

    uvicorn --factory catalogforge.api.main:create_app
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from catalogforge import __version__
from catalogforge.api.routes.scraping import router as scraping_router
from catalogforge.core.config import Config, load_config
from catalogforge.core.logging import configure_logging, get_logger
from catalogforge.reconcile.service import ScrapeService
from catalogforge.scraping.cache import ResultCache
from catalogforge.storage.factory import create_repository

logger = get_logger(__name__)


def build_service(config: Config) -> ScrapeService:
    """Construct the process-wide scrape service from configuration."""
    repository = create_repository(config)
    return ScrapeService(config, repository, cache=ResultCache(config.cache))


def create_app(
    config: Optional[Config] = None, service: Optional[ScrapeService] = None
) -> FastAPI:
    """Create the API application.

    Args:
        config: Configuration; loaded from catalogforge.yaml when omitted
        service: Pre-built service (tests inject one with stub extractors)

    Returns:
        Configured FastAPI app
    """
    config = config or load_config()
    if service is None:
        configure_logging(
            level=config.logging.level,
            log_file=Path(config.logging.file) if config.logging.file else None,
        )
        service = build_service(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "CatalogForge API started",
            origin=config.scraping.base_url,
            storage=config.storage.backend,
        )
        yield
        service.repository.close()

    app = FastAPI(title="CatalogForge API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.scrape_service = service
    app.include_router(scraping_router)
    return app
