"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.core.guards import Actor
from backend.app.core.jwt import create_access_token
from backend.app.core.security import get_password_hash
from backend.app.domain.lifecycle.engine import StatusTransitionEngine
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.schemas.lifecycle import BookingCreate
from backend.app.services.cache import TTLCache
from backend.app.services.lifecycle_service import BookingService, ShipmentService
from backend.app.services.notifications.dispatcher import NotificationDispatcher
from backend.app.services.notifications.queue import NotificationQueue
from backend.app.core.reliability import RetryPolicy
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class RecordingTransport:
    """Transport double: records deliveries, optionally failing the first N."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.delivered = []
        self.calls = 0

    async def deliver(self, request, message):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("transport down")
        self.delivered.append((request, message))
        return f"msg-{self.calls}"


class RecordingNotifier:
    """Stands in for the queue where only enqueued requests matter."""

    def __init__(self):
        self.requests = []

    def enqueue(self, request):
        self.requests.append(request)

    @property
    def templates(self):
        return [r.template for r in self.requests]


async def no_sleep(seconds):
    return None


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
async def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by token revocation
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
def transport():
    return RecordingTransport()

@pytest.fixture(autouse=True)
def app_state(transport):
    """Queue (not started) and cache the lifespan would normally create."""
    queue = NotificationQueue(
        NotificationDispatcher(transport, RetryPolicy(max_attempts=1, base_delay=0), sleep=no_sleep),
        send_delay=0,
        sleep=no_sleep,
    )
    app.state.notification_queue = queue
    app.state.cache = TTLCache(default_ttl_seconds=30)
    yield app.state
    del app.state.notification_queue
    del app.state.cache

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


async def create_user(db, username: str, role: UserRole, is_active: bool = True) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password=get_password_hash("password123"),
        role=role,
        is_active=is_active,
        is_superuser=role == UserRole.ADMIN,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, username=user.username)


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": user.username, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def users(db_session):
    """One active user per role plus a second customer."""
    return {
        "admin": await create_user(db_session, "admin", UserRole.ADMIN),
        "ops": await create_user(db_session, "ops", UserRole.OPERATIONS),
        "warehouse": await create_user(db_session, "warehouse", UserRole.WAREHOUSE),
        "customer": await create_user(db_session, "customer", UserRole.CUSTOMER),
        "other": await create_user(db_session, "other_customer", UserRole.CUSTOMER),
    }

@pytest.fixture
def actors(users):
    return {name: actor_for(user) for name, user in users.items()}

@pytest.fixture
def headers(users):
    return {name: headers_for(user) for name, user in users.items()}

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def engine_under_test(notifier):
    return StatusTransitionEngine(notifier=notifier)

@pytest.fixture
def booking_service(db_session, engine_under_test):
    return BookingService(db_session, engine_under_test, TTLCache(default_ttl_seconds=30))

@pytest.fixture
def shipment_service(db_session, engine_under_test):
    return ShipmentService(db_session, engine_under_test, TTLCache(default_ttl_seconds=30))


def booking_payload(**overrides) -> dict:
    payload = {
        "shipment_category": "AIR_FREIGHT",
        "origin": "China",
        "destination": "USA",
        "cargo_details": [
            {"description": "Shoes", "cartons": 2, "weight": 6.0, "volume": 0.5},
            {"description": "Bags", "cartons": 3, "weight": 9.0, "volume": 1.0},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_booking(booking_service, actors):
    """Create a booking as the customer (or as staff on the customer's behalf)."""
    async def _make(actor_name: str = "customer", **overrides):
        payload = booking_payload(**overrides)
        if actor_name != "customer" and actor_name != "other" and "customer_id" not in payload:
            payload["customer_id"] = actors["customer"].user_id
        return await booking_service.create(BookingCreate(**payload), actors[actor_name])
    return _make


@pytest.fixture
def session_factory():
    return TestingSessionLocal

@pytest.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file database, each on its own connection.

    The in-memory engine shares one connection between sessions, so
    interleaved writers need this one instead.
    """
    file_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'interleaved.db'}",
        poolclass=NullPool,
    )
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    await file_engine.dispose()

@pytest.fixture
async def file_actors(file_session_factory):
    async with file_session_factory() as db:
        return {
            "ops": actor_for(await create_user(db, "ops", UserRole.OPERATIONS)),
            "warehouse": actor_for(await create_user(db, "warehouse", UserRole.WAREHOUSE)),
            "customer": actor_for(await create_user(db, "customer", UserRole.CUSTOMER)),
        }

@pytest.fixture
def user_factory(db_session):
    async def _create(username: str, role: UserRole, is_active: bool = True) -> User:
        return await create_user(db_session, username, role, is_active=is_active)
    return _create

@pytest.fixture
def auth_headers():
    return headers_for

@pytest.fixture
def payload():
    return booking_payload

@pytest.fixture
def advance():
    """Walk a document through several statuses."""
    async def _advance(service, entity_id, actor, *statuses, **kwargs):
        entity = None
        for status in statuses:
            entity = await service.transition(entity_id, status, actor, **kwargs)
        return entity
    return _advance
