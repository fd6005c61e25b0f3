"""
Pytest configuration and fixtures.

Root-level fixtures shared across all test modules.
"""

import os

# Set test environment before the app reads its settings
os.environ["APP_ENV"] = "test"
os.environ["DEBUG"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from typing import AsyncGenerator, Callable, Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from poketrade import models  # noqa: F401
from poketrade.api.deps import get_catalog
from poketrade.core.database import get_db
from poketrade.core.security import create_access_token
from poketrade.main import app
from poketrade.services.catalog import CardCatalog, CatalogSnapshot, build_snapshot
from poketrade.services.trading import CardListChanges, SqlUserListStore

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# === Catalog Fixture Data ===

RARITIES = {
    "C": "Common",
    "U": "Uncommon",
    "R": "Rare",
    "RR": "Double Rare",
    "AR": "Art Rare",
    "SR": "Super Rare",
    "IM": "Immersive Rare",
    "UR": "Crown Rare",
}

SETS = [
    {"code": "A1", "releaseDate": "2024-10-30", "count": 286,
     "label": {"en": "Genetic Apex"}, "packs": ["mewtwo", "charizard", "pikachu"]},
    {"code": "P-A", "releaseDate": "2024-10-30", "label": {"en": "Promo-A"}, "packs": []},
]

# A1-1..A1-60 cycle through the tradeable rarities: n % 5 == 1 -> C, 2 -> U,
# 3 -> R, 4 -> RR, 0 -> AR.
TRADEABLE_CYCLE = ["C", "U", "R", "RR", "AR"]
NAMED = {1: "Bulbasaur", 2: "Ivysaur", 3: "Venusaur", 33: "Charmander"}


def _raw_card(set_code: str, number: int, rarity_code: str, name: str) -> dict:
    return {
        "set": set_code,
        "number": number,
        "rarity": RARITIES.get(rarity_code, rarity_code),
        "rarityCode": rarity_code,
        "imageName": f"c{set_code}_{number:06d}_00.webp",
        "label": {"slug": name.lower().replace(" ", "-"), "eng": name},
        "packs": ["mewtwo"],
    }


RAW_CARDS = [
    _raw_card("A1", n, TRADEABLE_CYCLE[(n - 1) % 5], NAMED.get(n, f"Card {n}"))
    for n in range(1, 61)
] + [
    _raw_card("A1", 61, "UR", "Mewtwo ex"),
    _raw_card("A1", 62, "SR", "Charizard ex"),
    _raw_card("A1", 63, "IM", "Pikachu ex"),
    _raw_card("P-A", 1, "PR", "Potion"),
]


# === Marker Configuration ===

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


def pytest_collection_modifyitems(config, items):
    """Automatically add markers based on test module."""
    for item in items:
        if "test_api" in str(item.fspath) or "test_auth" in str(item.fspath):
            item.add_marker(pytest.mark.api)


# === Catalog Fixtures ===

@pytest.fixture
def snapshot() -> CatalogSnapshot:
    """Enriched catalog built from the fixture records."""
    return build_snapshot(RAW_CARDS, RARITIES, SETS)


@pytest.fixture
def catalog() -> CardCatalog:
    """Catalog pinned to the fixture records (never hits the network)."""
    return CardCatalog.from_data(RAW_CARDS, RARITIES, SETS)


# === Core Database Fixtures ===

@pytest_asyncio.fixture
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def store(test_db: AsyncSession) -> SqlUserListStore:
    """List store bound to the test session."""
    return SqlUserListStore(test_db)


@pytest.fixture
def make_user(store: SqlUserListStore, snapshot: CatalogSnapshot) -> Callable:
    """Factory creating a profile plus lists, committed."""

    async def _make(
        user_id: str,
        wishlist: Iterable[str] = (),
        trade_list: Iterable[str] = (),
        username: str = "",
    ):
        await store.upsert_profile(
            user_id,
            username or f"trainer_{user_id}"[:20],
            "1234-5678-9012-3456",
        )
        changes = CardListChanges.of(wishlist, trade_list)
        if not changes.is_empty:
            await store.save_user_lists(user_id, changes, CardListChanges(), snapshot)
        await store.db.commit()

    return _make


# === HTTP Fixtures ===

@pytest_asyncio.fixture
async def client(
    test_db: AsyncSession, catalog: CardCatalog
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog] = lambda: catalog

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[str], dict]:
    """Build an Authorization header for a user id."""

    def _headers(user_id: str) -> dict:
        token = create_access_token({"sub": user_id, "email": f"{user_id}@test.com"})
        return {"Authorization": f"Bearer {token}"}

    return _headers
