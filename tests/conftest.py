"""
Pytest configuration and shared fixtures
"""
import sys
from pathlib import Path

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from treehub.config import get_settings  # noqa: E402
from treehub.models.database import Base, get_db  # noqa: E402
from treehub.services.agents import agent_manager  # noqa: E402


@pytest.fixture
async def engine():
    """In-memory SQLite engine with all tables created"""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """Database session for service-level tests"""
    async with session_factory() as s:
        yield s


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, with get_db bound to the test database"""
    from treehub.main import app

    async def override_get_db():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_agents():
    """Agent registry is process-global; start every test empty"""
    agent_manager.clear()
    yield
    agent_manager.clear()


@pytest.fixture
def weather_key(monkeypatch):
    """Configure an OpenWeather key so sweeps actually poll"""
    monkeypatch.setenv("OPENWEATHER_API_KEY", "test-key")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def no_weather_key(monkeypatch):
    """Blank the OpenWeather key so sweeps log an error"""
    monkeypatch.setenv("OPENWEATHER_API_KEY", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_openweather(monkeypatch):
    """Serve canned OpenWeather payloads; any city at latitude 0 fails"""
    from factories import CURRENT_WEATHER, FORECAST
    from treehub.services import weather

    async def current(lat, lon):
        if lat == 0:
            raise RuntimeError("bad payload")
        return CURRENT_WEATHER

    async def forecast(lat, lon, cnt=40):
        return {"list": FORECAST}

    monkeypatch.setattr(weather, "get_current_weather", current)
    monkeypatch.setattr(weather, "get_forecast", forecast)
