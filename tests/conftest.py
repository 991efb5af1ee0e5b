"""
Pytest configuration and fixtures for Logistics Pro tests.
"""
import os
import pytest
import pytest_asyncio
from typing import AsyncGenerator, Callable
from unittest.mock import MagicMock, AsyncMock

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_logistics_pro.db"
os.environ["SECRET_KEY"] = "test-signing-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PUSH_GATEWAY_URL"] = ""

from logistics_pro.core.database import Database
from logistics_pro.core.security import create_access_token, get_password_hash
from logistics_pro.models.user import User, UserRole
from logistics_pro.services.identity import Principal
from logistics_pro.services.lifecycle import ShipmentLifecycle
from logistics_pro.services.notifications import NotificationDispatcher, NotificationSink
from logistics_pro.services.shipment_store import ShipmentDraft


class RecordingSink(NotificationSink):
    """Collects notifications instead of sending them."""

    def __init__(self):
        self.sent = []

    async def send(self, notification):
        self.sent.append(notification)


class FailingSink(NotificationSink):
    async def send(self, notification):
        raise ConnectionError("push gateway unreachable")


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture(scope="session")
def password_hash() -> str:
    """bcrypt is slow; hash the shared test password once."""
    return get_password_hash("secret123")


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """File-backed SQLite database, fresh per test."""
    db = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'logistics.db'}",
        connect_args={"timeout": 30},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def users(database, password_hash) -> dict:
    """One account per role, plus a second company."""
    accounts = {
        "company": User(phone="+201000000001", name="Nile Express", role=UserRole.COMPANY.value),
        "other_company": User(phone="+201000000002", name="Delta Freight", role=UserRole.COMPANY.value),
        "driver": User(phone="+201000000003", name="Omar", role=UserRole.DRIVER.value),
        "client": User(phone="+201000000004", name="Alice", role=UserRole.CLIENT.value),
    }
    async with database.session() as db:
        for user in accounts.values():
            user.hashed_password = password_hash
            db.add(user)
        await db.flush()
    return accounts


@pytest.fixture
def principals(users) -> dict:
    return {key: Principal(id=user.id, role=UserRole(user.role)) for key, user in users.items()}


@pytest.fixture
def tokens(users) -> dict:
    return {
        key: create_access_token(user.id, user.role)
        for key, user in users.items()
    }


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture
async def notifier(sink) -> AsyncGenerator[NotificationDispatcher, None]:
    dispatcher = NotificationDispatcher(sink)
    yield dispatcher
    await dispatcher.close()


@pytest.fixture
def lifecycle(database, notifier) -> ShipmentLifecycle:
    return ShipmentLifecycle(database, notifier=notifier)


@pytest.fixture
def make_draft() -> Callable[..., ShipmentDraft]:
    """Factory for a valid draft; keyword overrides win."""

    def _make(**overrides) -> ShipmentDraft:
        fields = {
            "customer_name": "Alice",
            "customer_phone": "+201000000004",
            "origin": "Cairo",
            "destination": "Giza",
            "service_type": "express",
            "weight": "2.5",
            "cost": "50.0",
        }
        fields.update(overrides)
        return ShipmentDraft(**fields)

    return _make


class SequenceGenerator:
    """Tracking number generator that replays a fixed list."""

    def __init__(self, numbers):
        self.numbers = list(numbers)
        self.calls = 0

    def generate(self) -> str:
        value = self.numbers[min(self.calls, len(self.numbers) - 1)]
        self.calls += 1
        return value
