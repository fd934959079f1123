"""
Shared fixtures.

Each test gets a fresh in-memory SQLite database with the sample
catalogue seeded, an in-memory change feed, and an HTTP client whose
dependencies point at both.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV_MODE"] = "development"
os.environ["SEED_REFERENCE_DATA"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from tableside.database import (
    build_engine,
    build_session_maker,
    get_db,
    get_session_maker,
    init_db,
)
from tableside.main import app
from tableside.models import MenuItem, Modifier, Table
from tableside.schemas import CartLine
from tableside.seed import seed_reference_data
from tableside.services.realtime import InMemoryChangeFeed, get_change_feed


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(engine)
    async with build_session_maker(engine)() as session:
        await seed_reference_data(session)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def feed():
    return InMemoryChangeFeed()


@pytest.fixture
async def catalogue(db):
    """Seeded ids by name: tables by number, menu items and modifiers by name."""
    tables = (await db.execute(select(Table))).scalars().all()
    items = (await db.execute(select(MenuItem))).scalars().all()
    modifiers = (await db.execute(select(Modifier))).scalars().all()
    return {
        "tables": {t.table_number: t.id for t in tables},
        "items": {i.name: i.id for i in items},
        "modifiers": {m.name: m.id for m in modifiers},
    }


@pytest.fixture
def two_line_cart(catalogue):
    items = catalogue["items"]
    modifiers = catalogue["modifiers"]
    return [
        CartLine(
            menu_item_id=items["Tonkotsu Ramen"],
            quantity=2,
            modifier_ids=[modifiers["Extra Chashu"], modifiers["Inferno"]],
            special_requests="No scallions",
        ),
        CartLine(menu_item_id=items["Pork Gyoza"], quantity=1),
    ]


@pytest.fixture
async def client(session_maker, feed):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_session_maker] = lambda: session_maker

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
