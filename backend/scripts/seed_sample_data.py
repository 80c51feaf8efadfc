"""
Seed Sample Data — the reference marketplace used in demos and docs.

Run: python scripts/seed_sample_data.py
"""

import asyncio
import os
import sys
from decimal import Decimal

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.ext.asyncio import AsyncSession

from db.session import session_scope
from marketplace import accounts, catalog, offers, orders, pricing


async def seed_marketplace(db: AsyncSession) -> dict:
    """Create the sample rows through the command layer and return their ids."""
    # ── Users ─────────────────────────────────────────────
    farmer_user = await accounts.create_user(db, "farmer_dan", "dan@farm.com", "hashedpass1", role="farmer")
    coop_user = await accounts.create_user(db, "coop_hope", "hope@coop.com", "hashedpass2", role="coop")
    buyer_user = await accounts.create_user(db, "buyer_jane", "jane@market.com", "hashedpass3", role="buyer")

    # ── Profiles ──────────────────────────────────────────
    farmer = await accounts.create_farmer_profile(
        db,
        farmer_user.id,
        full_name="Dan Okoth",
        phone="+254700111111",
        village="Gweth Village",
        latitude=Decimal("-0.091234"),
        longitude=Decimal("34.761234"),
    )
    coop = await accounts.create_cooperative_profile(
        db,
        coop_user.id,
        coop_name="Hope Cooperative Society",
        registration_number="COOP12345",
        contact_phone="+254722222222",
        address="Kisumu Town",
        latitude=Decimal("-0.089123"),
        longitude=Decimal("34.759876"),
    )
    await accounts.add_membership(db, farmer.id, coop.id, role_in_coop="member")

    # ── Catalog ───────────────────────────────────────────
    maize = await catalog.create_category(db, "Maize", "All maize products")
    beans = await catalog.create_category(db, "Beans", "Different varieties of beans")
    white_maize = await catalog.create_product(
        db, farmer.id, "White Maize", "bag", category_id=maize.id, description="Freshly harvested maize bags"
    )
    red_beans = await catalog.create_product(
        db, farmer.id, "Red Beans", "kg", category_id=beans.id, description="Organic red beans"
    )
    await catalog.set_inventory(db, red_beans.id, Decimal("120.500"))

    # ── Trade ─────────────────────────────────────────────
    offer = await offers.create_offer(
        db, coop.id, Decimal("2500.00"), product_id=white_maize.id, min_quantity=Decimal("1"), currency="KES"
    )
    await pricing.record_price(db, white_maize.id, pricing.CoopSource(coop.id), Decimal("2500.00"))
    order = await orders.create_order(db, "ORD-1001", farmer.id, coop.id, status="pending", total_amount=Decimal("0.00"))
    item = await orders.add_order_item(db, order.id, white_maize.id, Decimal("10"), Decimal("2500.00"))

    return {
        "farmer_user_id": farmer_user.id,
        "coop_user_id": coop_user.id,
        "buyer_user_id": buyer_user.id,
        "farmer_id": farmer.id,
        "coop_id": coop.id,
        "category_ids": [maize.id, beans.id],
        "product_ids": [white_maize.id, red_beans.id],
        "offer_id": offer.id,
        "order_id": order.id,
        "order_item_id": item.id,
    }


async def main() -> None:
    async with session_scope() as db:
        ids = await seed_marketplace(db)
    print(f"✅ Seeded: 3 users, 1 farmer, 1 cooperative, 2 products, order ORD-1001 (item {ids['order_item_id']})")


if __name__ == "__main__":
    asyncio.run(main())
