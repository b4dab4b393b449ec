"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from episodic.config import Settings
from episodic.db.base import Base
from episodic.db.engine import create_db_engine, create_session_factory
# Import all models to register with Base.metadata
import episodic.db.models  # noqa: F401
from episodic.security import create_access_token
from episodic.services.engine import build_engine
from episodic.services.messages import MappingDisplayNameResolver


class FakeClock:
    """Controllable UTC clock for cooldown and merge window tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_db_engine("sqlite+aiosqlite:///")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def file_db_engine(tmp_path):
    """File-backed SQLite engine: one connection per session, real locking."""
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'episodic_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def resolver():
    return MappingDisplayNameResolver(
        {"u1": "Ana", "u2": "Bruno", "u3": "Carla", "u4": "Davi", "owner": "Olivia"}
    )


@pytest.fixture
def test_settings():
    return Settings(local_mode=True, toggle_retry_backoff_seconds=0.0)


@pytest.fixture
def engine(session_factory, test_settings, resolver, clock):
    """Fully wired interaction engine on the in-memory database."""
    return build_engine(session_factory, test_settings, resolver=resolver, clock=clock)


@pytest.fixture
def app(db_engine, session_factory, engine):
    """Create a test application instance with in-memory DB."""
    from episodic.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.redis = None
    _app.state.engine = engine
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user_id: str, roles: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, roles)}"}


@pytest.fixture
def auth():
    """Build bearer headers: ``auth("u1")`` or ``auth("svc", ["service"])``."""
    return auth_headers
