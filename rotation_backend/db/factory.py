"""
Build the configured ItemStore.
"""

from typing import Iterable, Optional

from ..core.config import Settings, get_settings
from ..core.errors import ConfigurationError
from ..core.logger import get_logger
from .base import ItemStore
from .memory import InMemoryItemStore
from .mongo import MongoItemStore
from .sqlalchemy import SqlItemStore, resolve_db_url

_logger = get_logger(__name__)


# PUBLIC_INTERFACE
def create_item_store(settings: Optional[Settings] = None, collections: Iterable[str] = ()) -> ItemStore:
    """Return an unconnected ItemStore for settings.DB_BACKEND.

    Raises:
        ConfigurationError: the backend is unknown or its connection parameters are missing.
    """
    settings = settings or get_settings()
    backend = settings.DB_BACKEND
    _logger.info("Creating item store.", extra={"backend": backend})

    if backend == "mongodb":
        return MongoItemStore(settings.MONGODB_URI, settings.MONGODB_DB)
    if backend == "sql":
        url = resolve_db_url(settings.DATABASE_URL, settings.SQLITE_FILE)
        return SqlItemStore(url, collections=collections, echo=settings.DB_ECHO)
    if backend == "memory":
        return InMemoryItemStore()
    raise ConfigurationError(f"Unsupported database backend: {backend}")
