"""
Pytest fixtures for test database, client, and booking helpers.

Each test gets its own SQLite file database, brought up with the same
ensure_schema() the application runs at startup. Every HTTP request gets a
fresh session, as it would in production.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from venue_booking.core.config import get_settings
from venue_booking.db.schema import ensure_schema
from venue_booking.db.session import build_engine, get_db
from venue_booking.main import app

BOOKINGS_URL = "/api/v1/event-bookings/"


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh database per test, schema created by the startup hook."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'venue.db'}")
    await ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def strict_mode(monkeypatch):
    """Switch the shared settings object to strict consistency for one test."""
    monkeypatch.setattr(get_settings(), "CONSISTENCY_MODE", "strict")


def booking_payload(start: str, end: str, customer: str = "Ada Lovelace", **extra) -> dict:
    payload = {
        "customer_name": customer,
        "email": f"{customer.split()[0].lower()}@example.com",
        "contact_number": "555-0100",
        "event_type": "Wedding",
        "event_start_date": start,
        "event_end_date": end,
    }
    payload.update(extra)
    return payload


@pytest.fixture
def create_booking(client: AsyncClient):
    """Create a booking over HTTP and return its id."""

    async def _create(start: str, end: str, customer: str = "Ada Lovelace", **extra) -> int:
        response = await client.post(BOOKINGS_URL, json=booking_payload(start, end, customer, **extra))
        assert response.status_code == 201, response.text
        return response.json()["booking_id"]

    return _create


@pytest.fixture
def set_status(client: AsyncClient):
    async def _set(booking_id: int, status: str, confirmed_by: Optional[str] = None):
        body = {"status": status}
        if confirmed_by:
            body["confirmed_by"] = confirmed_by
        return await client.put(f"{BOOKINGS_URL}{booking_id}/status", json=body)

    return _set
