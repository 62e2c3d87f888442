"""
Pytest Configuration and Shared Fixtures

Provides common fixtures for registry testing without external
dependencies (PostgreSQL is never contacted).
"""
import os
import sys
import pytest
import pytest_asyncio
from typing import Dict, Any
from uuid import uuid4

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables before importing registry modules
os.environ["APP_ENV"] = "testing"
os.environ["STORE_BACKEND"] = "memory"
os.environ["LOG_JSON"] = "false"


# ==================== Store Fixtures ====================

@pytest.fixture
def settings():
    """Provide test settings"""
    from client_registry.core.config import RegistrySettings
    return RegistrySettings(APP_ENV="testing", STORE_BACKEND="memory")


@pytest.fixture
def memory_store():
    """Provide an empty in-memory document store"""
    from client_registry.infrastructure.memory import MemoryDocumentStore
    return MemoryDocumentStore(simulate_delay=False)


@pytest_asyncio.fixture
async def repository(memory_store, settings):
    """Provide an initialized client repository over the memory store"""
    from client_registry.infrastructure import DocumentClientRepository
    repo = await DocumentClientRepository.create(memory_store, settings)
    yield repo
    await memory_store.reset()


# ==================== Test Data Fixtures ====================

@pytest.fixture
def schema_id():
    return uuid4()


@pytest.fixture
def environment_id():
    return uuid4()


@pytest.fixture
def sample_client_data(schema_id) -> Dict[str, Any]:
    """Provide sample client data"""
    return {
        "name": f"storefront-{uuid4().hex[:8]}",
        "schema_id": schema_id,
        "description": "Storefront web client",
    }
