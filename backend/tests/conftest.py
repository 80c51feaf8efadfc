"""
Test Configuration — Fixtures for async DB and a seeded marketplace.

Every test gets its own in-memory SQLite database with foreign keys
enforced, the full schema, and the reporting views.

Fixtures hand out integer ids rather than ORM objects: a rejected write
rolls back its SAVEPOINT and expires the instances it touched.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from db import views  # noqa: F401  registers view DDL on the metadata
from db.models import (
    Category,
    Cooperative,
    CoopProductOffer,
    Farmer,
    Inventory,
    Membership,
    Order,
    OrderItem,
    Product,
    User,
)
from db.session import Base, build_engine

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create a fresh database with all tables and views."""
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    session_factory = async_sessionmaker(test_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_db(test_db):
    """Seed the sample marketplace: one farmer, one coop, one order of maize."""
    farmer_user = User(username="farmer_dan", email="dan@farm.com", password_hash="hashedpass1", role="farmer")
    coop_user = User(username="coop_hope", email="hope@coop.com", password_hash="hashedpass2", role="coop")
    buyer_user = User(username="buyer_jane", email="jane@market.com", password_hash="hashedpass3", role="buyer")
    test_db.add_all([farmer_user, coop_user, buyer_user])
    await test_db.flush()

    farmer = Farmer(
        user_id=farmer_user.id,
        full_name="Dan Okoth",
        phone="+254700111111",
        village="Gweth Village",
        latitude=Decimal("-0.091234"),
        longitude=Decimal("34.761234"),
    )
    coop = Cooperative(
        user_id=coop_user.id,
        coop_name="Hope Cooperative Society",
        registration_number="COOP12345",
        contact_phone="+254722222222",
        address="Kisumu Town",
        latitude=Decimal("-0.089123"),
        longitude=Decimal("34.759876"),
    )
    test_db.add_all([farmer, coop])
    await test_db.flush()

    test_db.add(Membership(farmer_id=farmer.id, coop_id=coop.id, role_in_coop="member"))

    maize = Category(name="Maize", description="All maize products")
    beans = Category(name="Beans", description="Different varieties of beans")
    test_db.add_all([maize, beans])
    await test_db.flush()

    white_maize = Product(farmer_id=farmer.id, category_id=maize.id, name="White Maize", unit="bag")
    red_beans = Product(farmer_id=farmer.id, category_id=beans.id, name="Red Beans", unit="kg")
    test_db.add_all([white_maize, red_beans])
    await test_db.flush()

    test_db.add(Inventory(product_id=red_beans.id, available_quantity=Decimal("120.500")))

    offer = CoopProductOffer(
        coop_id=coop.id,
        product_id=white_maize.id,
        price_per_unit=Decimal("2500.00"),
        min_quantity=Decimal("1"),
    )
    test_db.add(offer)

    order = Order(
        order_number="ORD-1001",
        farmer_id=farmer.id,
        coop_id=coop.id,
        status="pending",
        total_amount=Decimal("0.00"),
        placed_at=datetime(2026, 3, 1, 9, 0, 0),
    )
    test_db.add(order)
    await test_db.flush()

    item = OrderItem(order_id=order.id, product_id=white_maize.id, quantity=Decimal("10"), unit_price=Decimal("2500.00"))
    test_db.add(item)
    await test_db.flush()

    await test_db.commit()

    return {
        "farmer_user_id": farmer_user.id,
        "coop_user_id": coop_user.id,
        "buyer_user_id": buyer_user.id,
        "farmer_id": farmer.id,
        "coop_id": coop.id,
        "maize_category_id": maize.id,
        "beans_category_id": beans.id,
        "white_maize_id": white_maize.id,
        "red_beans_id": red_beans.id,
        "offer_id": offer.id,
        "order_id": order.id,
        "order_item_id": item.id,
    }


@pytest.fixture
def count_rows(test_db):
    """Count rows in a table straight from the database, bypassing the identity map."""

    async def _count(model, *criteria) -> int:
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        return await test_db.scalar(stmt)

    return _count
