"""
Tests for registry settings and wiring
"""
import pytest
from pydantic import ValidationError


class TestRegistrySettings:
    """Tests for RegistrySettings validation"""

    def test_defaults(self):
        from client_registry.core.config import RegistrySettings

        settings = RegistrySettings(STORE_BACKEND="memory")

        assert settings.CLIENTS_COLLECTION == "clients"
        assert settings.CLIENT_VERSIONS_COLLECTION == "client_versions"
        assert settings.QUERIES_COLLECTION == "queries"
        assert settings.PUBLISH_REPORTS_COLLECTION == "client_publish_reports"
        assert settings.PUBLISHED_CLIENTS_COLLECTION == "published_clients"

    def test_app_env_normalized(self):
        from client_registry.core.config import RegistrySettings

        assert RegistrySettings(APP_ENV="dev").APP_ENV == "development"
        assert RegistrySettings(APP_ENV="PROD").APP_ENV == "production"
        assert RegistrySettings(APP_ENV="test").APP_ENV == "testing"

    def test_backend_normalized(self):
        from client_registry.core.config import RegistrySettings

        assert RegistrySettings(STORE_BACKEND="MEMORY").STORE_BACKEND == "memory"

    def test_unknown_backend_rejected(self):
        from client_registry.core.config import RegistrySettings

        with pytest.raises(ValidationError):
            RegistrySettings(STORE_BACKEND="mongo")

    def test_postgres_requires_dsn(self):
        from client_registry.core.config import RegistrySettings

        with pytest.raises(ValidationError):
            RegistrySettings(STORE_BACKEND="postgres", POSTGRES_DSN=None)

    def test_postgres_with_dsn(self):
        from client_registry.core.config import RegistrySettings

        settings = RegistrySettings(
            STORE_BACKEND="postgres",
            POSTGRES_DSN="postgresql://registry@localhost/registry"
        )
        assert settings.STORE_BACKEND == "postgres"

    def test_pool_bounds(self):
        from client_registry.core.config import RegistrySettings

        with pytest.raises(ValidationError):
            RegistrySettings(POSTGRES_POOL_MIN_SIZE=20, POSTGRES_POOL_MAX_SIZE=5)

    def test_log_level_validated(self):
        from client_registry.core.config import RegistrySettings

        assert RegistrySettings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"
        with pytest.raises(ValidationError):
            RegistrySettings(LOG_LEVEL="loud")

    def test_environment_variables(self, monkeypatch):
        from client_registry.core.config import RegistrySettings

        monkeypatch.setenv("CLIENTS_COLLECTION", "registry_clients")

        assert RegistrySettings().CLIENTS_COLLECTION == "registry_clients"


class TestContainer:
    """Tests for repository wiring"""

    @pytest.mark.asyncio
    async def test_memory_backend(self, settings):
        from client_registry.core.container import create_client_repository
        from client_registry.infrastructure.memory import MemoryDocumentStore

        repository = await create_client_repository(settings)

        assert isinstance(repository.store, MemoryDocumentStore)
        clients = repository.store.collection(settings.CLIENTS_COLLECTION)
        assert "name_unique" in clients.indexes

    @pytest.mark.asyncio
    async def test_reuses_given_store(self, settings, memory_store):
        from client_registry.core.container import create_client_repository

        repository = await create_client_repository(settings, store=memory_store)

        assert repository.store is memory_store

    @pytest.mark.asyncio
    async def test_unknown_backend_raises_configuration_error(self, settings):
        from client_registry.core.container import create_document_store
        from client_registry.core.errors import ConfigurationError

        broken = settings.model_copy(update={"STORE_BACKEND": "mongo"})

        with pytest.raises(ConfigurationError):
            await create_document_store(broken)
