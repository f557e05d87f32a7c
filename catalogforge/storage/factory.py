"""
Storage Backend Factory.

    create_repository(config)
        ├── "sql"    → SqlCatalogRepository  (SQLAlchemy, any database URL)
        └── "memory" → MemoryCatalogRepository  (process-local)

Backends are imported lazily so the memory backend works without a
database driver being importable.
"""

from typing import Callable, Dict

from catalogforge.core.config import Config
from catalogforge.core.exceptions import ConfigValidationError
from catalogforge.core.logging import get_logger
from catalogforge.storage.base import CatalogRepository

logger = get_logger(__name__)

BackendCreator = Callable[[Config], CatalogRepository]


def _create_sql(config: Config) -> CatalogRepository:
    from catalogforge.storage.sql import SqlCatalogRepository

    return SqlCatalogRepository(config.storage.database_url, echo=config.storage.echo_sql)


def _create_memory(config: Config) -> CatalogRepository:
    from catalogforge.storage.memory import MemoryCatalogRepository

    return MemoryCatalogRepository()


_BACKENDS: Dict[str, BackendCreator] = {
    "sql": _create_sql,
    "memory": _create_memory,
}


def list_backends() -> list[str]:
    """List backend names accepted by storage.backend."""
    return list(_BACKENDS)


def create_repository(config: Config) -> CatalogRepository:
    """Create the repository selected by config.storage.backend.

    Raises:
        ConfigValidationError: If the backend name is unknown
    """
    backend = config.storage.backend.lower()
    creator = _BACKENDS.get(backend)
    if creator is None:
        raise ConfigValidationError(
            f"Unknown storage backend: {backend}. Available: {list_backends()}",
            field="storage.backend",
        )
    logger.debug("Creating storage backend", backend=backend)
    return creator(config)
