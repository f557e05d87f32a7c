"""
Storage configuration.

Selects the repository backend used by the reconciler: a SQL database
through SQLAlchemy, or the in-process memory backend.
"""

from dataclasses import dataclass


@dataclass
class StorageConfig:
    """Storage backend configuration."""

    backend: str = "sql"  # sql, memory
    database_url: str = "sqlite:///catalogforge.db"
    echo_sql: bool = False
