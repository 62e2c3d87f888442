"""
Dependency Wiring
Builds the document store and client repository selected by settings.
"""
from typing import Optional
import logging

from .config import RegistrySettings, get_settings
from .errors import ConfigurationError
from .logging_framework import configure_logging
from ..ports.document_store_port import DocumentStorePort
from ..infrastructure.document_client_repository import DocumentClientRepository
from ..infrastructure.memory import MemoryDocumentStore

logger = logging.getLogger(__name__)


async def create_document_store(settings: RegistrySettings) -> DocumentStorePort:
    """Create the document store for ``settings.STORE_BACKEND``"""
    if settings.STORE_BACKEND == "memory":
        logger.info("Using in-memory document store")
        return MemoryDocumentStore()

    if settings.STORE_BACKEND == "postgres":
        if not settings.POSTGRES_DSN:
            raise ConfigurationError(
                "POSTGRES_DSN is required for the postgres backend",
                setting="POSTGRES_DSN"
            )
        # asyncpg is only needed for this backend
        from ..infrastructure.postgres import PostgresDocumentStore

        return await PostgresDocumentStore.create(
            settings.POSTGRES_DSN,
            min_size=settings.POSTGRES_POOL_MIN_SIZE,
            max_size=settings.POSTGRES_POOL_MAX_SIZE
        )

    raise ConfigurationError(
        f"Unknown store backend: {settings.STORE_BACKEND}",
        setting="STORE_BACKEND"
    )


async def create_client_repository(
    settings: Optional[RegistrySettings] = None,
    store: Optional[DocumentStorePort] = None
) -> DocumentClientRepository:
    """
    Build an initialized client repository.

    Args:
        settings: Registry settings (defaults to ``get_settings()``)
        store: Existing store to reuse instead of creating one

    Returns:
        Repository with collections and indexes in place
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    if store is None:
        store = await create_document_store(settings)

    return await DocumentClientRepository.create(store, settings)
