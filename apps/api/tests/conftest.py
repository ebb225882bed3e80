"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema recreated for each test
- Staff user factory and per-role users
- Controllable clock
- HTTPX AsyncClient acting as a given user (X-User-Id header)
"""
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Must be set before the app modules build their engine/settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["ENV"] = "test"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

from repairshop.main import app
from repairshop.core.deps import USER_HEADER, get_db
from repairshop.db.base import Base
from repairshop.db.enums import Role
from repairshop.db.models import User
from repairshop.db.session import SessionLocal, engine


T0 = datetime(2026, 2, 3, 15, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    App code commits freely; isolation comes from dropping the schema.
    """
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def make_user(db: Session):
    """Factory: make_user(Role.TECHNICIAN, is_active=True) -> persisted User."""

    def _make(role: Role, *, is_active: bool = True, name: str | None = None) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=f"{role.value}-{suffix}@shop.test",
            display_name=name or f"{role.value.title()} {suffix}",
            role=role.value,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def coordinator(make_user) -> User:
    return make_user(Role.COORDINATOR)


@pytest.fixture
def admin(make_user) -> User:
    return make_user(Role.ADMIN)


@pytest.fixture
def technician(make_user) -> User:
    return make_user(Role.TECHNICIAN)


@pytest.fixture
def parts_manager(make_user) -> User:
    return make_user(Role.PARTS_MANAGER)


@pytest.fixture
def salesperson(make_user) -> User:
    return make_user(Role.SALESPERSON)


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Callable clock. ``tick`` advances the time on every read."""

    def __init__(self, start: datetime = T0, tick: timedelta = timedelta(0)) -> None:
        self.now = start
        self.tick = tick

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.tick
        return current

    def set(self, value: datetime) -> None:
        self.now = value

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ticking_clock() -> FakeClock:
    """Advances one second per read, so created_at values are distinct."""
    return FakeClock(tick=timedelta(seconds=1))


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient without an acting user."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


def as_user(user: User) -> dict[str, str]:
    """Headers that make a request act as ``user``."""
    return {USER_HEADER: str(user.id)}


@pytest.fixture
def user_headers():
    return as_user
