"""Global test fixtures for cartpilot."""

from __future__ import annotations

import pytest
import pytest_asyncio

from cartpilot.core.models.config import DatabaseConfig
from cartpilot.core.models.task import Task
from cartpilot.core.security.vault import FernetVault
from cartpilot.core.storage.database import Database
from tests.fakes import MockBrowserEngine, MockPage, RecordingSleep, StrategyScript

# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def task() -> Task:
    return Task(
        retailer="teststore",
        name="Console",
        product_url="https://shop.example.com/products/console",
        monitor_delay_ms=3000,
    )


@pytest.fixture
def script() -> StrategyScript:
    return StrategyScript()


@pytest.fixture
def engine() -> MockBrowserEngine:
    return MockBrowserEngine()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def page() -> MockPage:
    return MockPage()


@pytest.fixture
def vault_key() -> str:
    return FernetVault.generate_key()


@pytest.fixture
def vault(vault_key: str) -> FernetVault:
    return FernetVault(vault_key)


@pytest_asyncio.fixture
async def database(vault: FernetVault):
    db = Database(DatabaseConfig(url="sqlite+aiosqlite:///:memory:"), vault=vault)
    await db.init()
    yield db
    await db.close()
