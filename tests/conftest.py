"""Shared fixtures: a small seeded catalog in a file-backed SQLite database."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from marketsearch.catalog.models import Category, Listing, ListingStatus
from marketsearch.infrastructure import database as database_module
from marketsearch.infrastructure.database import Base, Database
from marketsearch.main import app

TV_SCHEMA = {
    "brand": {
        "type": "enum",
        "label": "Brand",
        "values": ["Samsung", "LG", "Sony", "Panasonic"],
        "required": True,
    },
    "screenSize": {"type": "range", "label": "Screen Size", "unit": "inches"},
    "smartTv": {"type": "boolean", "label": "Smart TV"},
    "panel": {"type": "text", "label": "Panel Type"},
    "warrantyYears": {"type": "number", "label": "Warranty", "filterable": False},
}

SHOE_SCHEMA = {
    "brand": {
        "type": "enum",
        "label": "Brand",
        "values": ["Nike", "Adidas", "Puma", "Asics"],
    },
}

ACTIVE_LISTING_COUNT = 10


def sqlite_url(path: Path) -> str:
    """Build an async SQLite URL for a database file."""
    return f"sqlite+aiosqlite:///{path}"


def _at(month: int, day: int) -> datetime:
    return datetime(2026, month, day, 9, 0, tzinfo=timezone.utc)


def build_categories() -> list[Category]:
    """Categories: two with schemas, one without, one inactive."""
    return [
        Category(
            id="cat-tv",
            name="Televisions",
            slug="televisions",
            attribute_schema=TV_SCHEMA,
            sort_order=1,
        ),
        Category(
            id="cat-shoes",
            name="Running Shoes",
            slug="running-shoes",
            attribute_schema=SHOE_SCHEMA,
            sort_order=2,
        ),
        Category(
            id="cat-office",
            name="Office Supplies",
            slug="office-supplies",
            description="Stationery and furniture",
            attribute_schema={},
            sort_order=3,
        ),
        Category(
            id="cat-radio",
            name="Vintage Radios",
            slug="vintage-radios",
            attribute_schema={},
            is_active=False,
            sort_order=4,
        ),
    ]


def make_listing(**overrides: Any) -> Listing:
    """Create a listing with sensible defaults."""
    data: dict[str, Any] = {
        "description": "",
        "currency": "INR",
        "state": "Maharashtra",
        "country": "India",
        "attributes": {},
        "images": [],
        "supplier_name": "Generic Traders",
        "supplier_email": "sales@example.com",
        "supplier_verified": True,
        "supplier_rating": 4.2,
        "inventory_quantity": 100,
        "inventory_unit": "pieces",
        "inventory_moq": 1,
        "status": ListingStatus.ACTIVE.value,
        "views": 0,
        "inquiries": 0,
    }
    data.update(overrides)
    if "created_at" in data:
        data.setdefault("updated_at", data["created_at"])
    return Listing(**data)


def build_listings() -> list[Listing]:
    """Listings across three categories, cities and price buckets."""
    return [
        # Televisions
        make_listing(
            id="tv-01",
            title="Samsung Crystal 4K Smart TV",
            description="55 inch Samsung LED television",
            price=45000,
            city="Mumbai",
            category_id="cat-tv",
            attributes={"brand": "Samsung", "screenSize": 55, "smartTv": True, "panel": "LED"},
            supplier_name="Samsung Distributors",
            views=120,
            created_at=_at(1, 10),
        ),
        make_listing(
            id="tv-02",
            title="Samsung Frame QLED TV",
            description="65 inch art mode television",
            price=89000,
            city="Delhi",
            state="Delhi",
            category_id="cat-tv",
            attributes={"brand": "Samsung", "screenSize": 65, "smartTv": True},
            supplier_name="Vision Electronics",
            views=300,
            created_at=_at(1, 12),
        ),
        make_listing(
            id="tv-03",
            title="LG OLED evo TV",
            description="65 inch OLED television",
            price=125000,
            city="Mumbai",
            category_id="cat-tv",
            attributes={"brand": "LG", "screenSize": 65, "smartTv": True},
            views=80,
            created_at=_at(1, 5),
            images=["https://cdn.example.com/lg-oled.jpg"],
        ),
        make_listing(
            id="tv-04",
            title="Sony Bravia Full HD TV",
            description="43 inch LED television",
            price=25000,
            city="Bengaluru",
            state="Karnataka",
            category_id="cat-tv",
            attributes={"brand": "Sony", "screenSize": 43, "smartTv": False},
            views=50,
            created_at=_at(1, 8),
        ),
        make_listing(
            id="tv-05",
            title="Panasonic LED TV",
            description="32 inch HD ready television",
            price=18000,
            city="Pune",
            category_id="cat-tv",
            attributes={"brand": "Panasonic", "screenSize": 32, "smartTv": False},
            views=10,
            created_at=_at(1, 1),
        ),
        make_listing(
            id="tv-06",
            title="Samsung Neo QLED TV",
            description="Upcoming 75 inch television",
            price=150000,
            city="Mumbai",
            category_id="cat-tv",
            attributes={"brand": "Samsung", "screenSize": 75, "smartTv": True},
            status=ListingStatus.DRAFT.value,
            created_at=_at(1, 15),
        ),
        make_listing(
            id="tv-07",
            title="LG Smart TV",
            description="43 inch smart television",
            price=30000,
            city="Mumbai",
            category_id="cat-tv",
            attributes={"brand": "LG", "screenSize": 43, "smartTv": True},
            status=ListingStatus.INACTIVE.value,
            created_at=_at(1, 16),
        ),
        # Running shoes
        make_listing(
            id="sh-01",
            title="Nike Air Zoom Pegasus",
            description="Lightweight running shoes",
            price=9500,
            city="Mumbai",
            category_id="cat-shoes",
            attributes={"brand": "Nike"},
            inventory_unit="pairs",
            inventory_moq=10,
            views=200,
            created_at=_at(2, 1),
        ),
        make_listing(
            id="sh-02",
            title="Adidas Ultraboost Running Shoes",
            description="Responsive cushioning for daily training",
            price=14000,
            city="Delhi",
            state="Delhi",
            category_id="cat-shoes",
            attributes={"brand": "Adidas"},
            inventory_unit="pairs",
            views=150,
            created_at=_at(2, 3),
        ),
        make_listing(
            id="sh-03",
            title="Puma Velocity Nitro",
            description="Cushioned trainers",
            price=7000,
            city="Chennai",
            state="Tamil Nadu",
            category_id="cat-shoes",
            attributes={"brand": "Puma"},
            supplier_name="Samsung Footwear Traders",
            inventory_unit="pairs",
            views=90,
            created_at=_at(2, 2),
        ),
        # Office supplies (category without attributes)
        make_listing(
            id="of-01",
            title="A4 Copier Paper",
            description="500 sheets per ream",
            price=450,
            city="Kolkata",
            state="West Bengal",
            category_id="cat-office",
            inventory_quantity=0,
            inventory_unit="reams",
            views=5,
            created_at=_at(3, 1),
        ),
        make_listing(
            id="of-02",
            title="Ergonomic Office Chair",
            description="Mesh back with lumbar support",
            price=8500,
            city="Mumbai",
            category_id="cat-office",
            views=40,
            created_at=_at(3, 2),
        ),
    ]


async def seed_catalog(engine: AsyncEngine) -> None:
    """Create the tables and insert the test catalog."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with sessions() as session:
        session.add_all(build_categories())
        await session.flush()
        session.add_all(build_listings())
        await session.commit()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of an empty database file."""
    return sqlite_url(tmp_path / "search.db")


@pytest_asyncio.fixture
async def sessions(database_url: str):
    """Session factory over a freshly seeded catalog."""
    engine = create_async_engine(database_url)
    await seed_catalog(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def seeded_database_url(database_url: str) -> str:
    """URL of a seeded database, prepared outside any running loop."""

    async def _seed() -> None:
        engine = create_async_engine(database_url)
        try:
            await seed_catalog(engine)
        finally:
            await engine.dispose()

    asyncio.run(_seed())
    return database_url


@pytest.fixture
def client(seeded_database_url: str, monkeypatch: pytest.MonkeyPatch):
    """Test client whose shared database points at the seeded catalog."""
    monkeypatch.setattr(database_module, "database", Database(seeded_database_url))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def broken_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Test client whose database cannot be opened."""
    url = sqlite_url(tmp_path / "missing-dir" / "search.db")
    monkeypatch.setattr(database_module, "database", Database(url))
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def add_listings(sessions):
    """Insert extra listings into the seeded catalog."""

    async def _add(*rows: dict[str, Any]) -> None:
        async with sessions() as session:
            session.add_all([make_listing(**row) for row in rows])
            await session.commit()

    return _add
