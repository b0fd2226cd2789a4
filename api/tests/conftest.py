"""Test configuration for API tests."""

import os
import pathlib
import sys
from dataclasses import dataclass
from decimal import Decimal

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

# Provide default settings so tests can run without requiring a full
# environment configuration.
os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("PAYMENT_GATEWAY", "stub")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost")

import fakeredis.aioredis  # noqa: E402
import httpx  # noqa: E402
import pytest  # noqa: E402

import api.app.db as app_db  # noqa: E402
from api.app.auth import hash_password  # noqa: E402
from api.app.models_tenant import MenuItem, Restaurant, Table  # noqa: E402
from api.app.providers.gateway_stub import StubGateway  # noqa: E402
from api.app.services.lifecycle import OrderLifecycle  # noqa: E402
from api.app.services.notifications import OrderNotifier  # noqa: E402
from config import Settings  # noqa: E402

WEBHOOK_SECRET = "whsec_test"


@dataclass
class Seed:
    """Ids of the restaurant, table and menu created for a test."""

    restaurant_id: str
    table_number: int
    burger_id: str
    fries_id: str


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        currency="usd",
        default_platform_fee_percent=1.0,
        stripe_webhook_secret=WEBHOOK_SECRET,
        public_base_url="http://testserver",
        sse_keepalive_secs=1,
    )


@pytest.fixture
async def db_factory():
    factory, engine = app_db.create_test_session()
    await app_db.create_all(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
async def session(db_factory):
    async with db_factory() as s:
        yield s


async def seed_restaurant(session, email="owner@bistro.test", name="Bistro") -> Seed:
    restaurant = Restaurant(name=name, email=email, password_hash=hash_password("secret-pass"))
    session.add(restaurant)
    await session.flush()
    table = Table(restaurant_id=restaurant.id, number=1)
    burger = MenuItem(restaurant_id=restaurant.id, name="Burger", price=Decimal("10.00"))
    fries = MenuItem(restaurant_id=restaurant.id, name="Fries", price=Decimal("5.50"))
    session.add_all([table, burger, fries])
    await session.commit()
    return Seed(restaurant.id, 1, burger.id, fries.id)


@pytest.fixture
async def seed(session) -> Seed:
    return await seed_restaurant(session)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway(webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def redis():
    return fakeredis.aioredis.FakeRedis()


@pytest.fixture
def lifecycle(session, gateway, redis, settings) -> OrderLifecycle:
    return OrderLifecycle(session, gateway, OrderNotifier(redis), settings)


def staff_headers(restaurant_id: str) -> dict:
    from api.app.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token(restaurant_id)}"}


@pytest.fixture
async def client(db_factory, gateway, redis):
    """HTTP client for the application wired to the test database and Redis."""

    from api.app.main import app

    async def _session():
        async with db_factory() as s:
            yield s

    saved = (app.state.redis, app.state.gateway)
    app.dependency_overrides[app_db.get_session] = _session
    app.state.redis = redis
    app.state.gateway = gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()
    app.state.redis, app.state.gateway = saved
