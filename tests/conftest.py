"""
Pytest configuration and fixtures.
"""
import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add tests to path for fake_store imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from fake_store import FakeObjectStore, make_instance  # noqa: E402

from database_operator.config.settings import settings  # noqa: E402
from database_operator.main import create_app  # noqa: E402


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Pin settings that tests depend on."""
    monkeypatch.setattr(settings, "environment", "testing")
    monkeypatch.setattr(settings, "image_registry_prefix", "registry.zwjk.com/middleware/")
    monkeypatch.setattr(settings, "credential_scope", "kind")
    monkeypatch.setattr(settings, "observe_workload_status", False)
    monkeypatch.setattr(settings, "watch_namespace", "")
    return settings


@pytest.fixture
def store() -> FakeObjectStore:
    """Empty in-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def seeded_store(store: FakeObjectStore) -> FakeObjectStore:
    """Store holding one MySQL instance with backups disabled."""
    store.seed(make_instance())
    return store


@pytest.fixture
def app(seeded_store: FakeObjectStore):
    """Operator app with the worker disabled."""
    return create_app(store=seeded_store, run_worker=False)


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
