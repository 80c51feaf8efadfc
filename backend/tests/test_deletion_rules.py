"""
Tests for per-relationship deletion policy.

Covers:
  - Product delete: RESTRICT from order items, SET NULL on offers,
    CASCADE to inventory and price history
  - Category delete: SET NULL on products and offers
  - User delete: cascade through profiles, products, memberships, orders
  - Order delete: cascade to lines, negotiations detached
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from core.errors import OfferTargetMissingError, RecordNotFoundError, RestrictedDeleteError
from db.models import (
    Category,
    CoopProductOffer,
    Farmer,
    Inventory,
    Membership,
    Negotiation,
    Order,
    OrderItem,
    PriceHistory,
    Product,
    User,
)
from marketplace import accounts, catalog, negotiations, offers, orders, pricing


@pytest.mark.asyncio
class TestDeleteProduct:
    async def test_product_on_an_order_cannot_be_deleted(self, test_db, seeded_db, count_rows):
        with pytest.raises(RestrictedDeleteError):
            await catalog.delete_product(test_db, seeded_db["white_maize_id"])

        assert await count_rows(Product, Product.id == seeded_db["white_maize_id"]) == 1
        assert await count_rows(OrderItem) == 1

    async def test_restrict_is_checked_before_offer_rule(self, test_db, seeded_db):
        """White maize has both an order line and a product-only offer: RESTRICT wins."""
        with pytest.raises(RestrictedDeleteError):
            await catalog.delete_product(test_db, seeded_db["white_maize_id"])

    async def test_offer_keeps_category_when_product_goes(self, test_db, seeded_db, count_rows):
        offer = await offers.create_offer(
            test_db,
            seeded_db["coop_id"],
            Decimal("95.00"),
            product_id=seeded_db["red_beans_id"],
            category_id=seeded_db["beans_category_id"],
        )
        offer_id = offer.id
        await test_db.commit()

        await catalog.delete_product(test_db, seeded_db["red_beans_id"])
        await test_db.commit()

        row = (
            await test_db.execute(
                select(CoopProductOffer.product_id, CoopProductOffer.category_id).where(CoopProductOffer.id == offer_id)
            )
        ).one()
        assert row.product_id is None
        assert row.category_id == seeded_db["beans_category_id"]
        assert await count_rows(Product, Product.id == seeded_db["red_beans_id"]) == 0

    async def test_delete_that_would_orphan_an_offer_is_rejected(self, test_db, seeded_db, count_rows):
        await offers.create_offer(test_db, seeded_db["coop_id"], Decimal("95.00"), product_id=seeded_db["red_beans_id"])
        await test_db.commit()

        with pytest.raises(OfferTargetMissingError):
            await catalog.delete_product(test_db, seeded_db["red_beans_id"])

        assert await count_rows(Product, Product.id == seeded_db["red_beans_id"]) == 1

    async def test_inventory_and_price_history_cascade(self, test_db, seeded_db, count_rows):
        await pricing.record_price(
            test_db, seeded_db["red_beans_id"], pricing.FarmerSource(seeded_db["farmer_id"]), Decimal("110.00")
        )
        await test_db.commit()
        assert await count_rows(Inventory, Inventory.product_id == seeded_db["red_beans_id"]) == 1

        await catalog.delete_product(test_db, seeded_db["red_beans_id"])
        await test_db.commit()

        assert await count_rows(Inventory, Inventory.product_id == seeded_db["red_beans_id"]) == 0
        assert await count_rows(PriceHistory, PriceHistory.product_id == seeded_db["red_beans_id"]) == 0

    async def test_missing_product(self, test_db, seeded_db):
        with pytest.raises(RecordNotFoundError):
            await catalog.delete_product(test_db, 4242)


@pytest.mark.asyncio
class TestDeleteCategory:
    async def test_products_lose_their_category(self, test_db, seeded_db, count_rows):
        await catalog.delete_category(test_db, seeded_db["beans_category_id"])
        await test_db.commit()

        category_id = await test_db.scalar(select(Product.category_id).where(Product.id == seeded_db["red_beans_id"]))
        assert category_id is None
        assert await count_rows(Category) == 1

    async def test_category_only_offer_blocks_delete(self, test_db, seeded_db, count_rows):
        await offers.create_offer(
            test_db, seeded_db["coop_id"], Decimal("90.00"), category_id=seeded_db["beans_category_id"]
        )
        await test_db.commit()

        with pytest.raises(OfferTargetMissingError):
            await catalog.delete_category(test_db, seeded_db["beans_category_id"])
        assert await count_rows(Category) == 2


@pytest.mark.asyncio
class TestDeleteUser:
    async def _second_farmer(self, db):
        user = await accounts.create_user(db, "farmer_amina", "amina@farm.com", "hashedpass4", role="farmer")
        farmer = await accounts.create_farmer_profile(db, user.id, full_name="Amina Atieno", village="Ahero")
        product = await catalog.create_product(db, farmer.id, "Sorghum", "kg")
        await catalog.set_inventory(db, product.id, Decimal("40"))
        await db.commit()
        return user.id, farmer.id, product.id

    async def test_farmer_delete_cascades(self, test_db, seeded_db, count_rows):
        user_id, farmer_id, product_id = await self._second_farmer(test_db)
        await accounts.add_membership(test_db, farmer_id, seeded_db["coop_id"], role_in_coop="officer")
        await test_db.commit()

        await accounts.delete_user(test_db, user_id)
        await test_db.commit()

        assert await count_rows(User, User.id == user_id) == 0
        assert await count_rows(Farmer, Farmer.id == farmer_id) == 0
        assert await count_rows(Membership, Membership.farmer_id == farmer_id) == 0
        assert await count_rows(Product, Product.id == product_id) == 0
        assert await count_rows(Inventory, Inventory.product_id == product_id) == 0
        # the cooperative side is untouched
        assert await count_rows(Membership, Membership.coop_id == seeded_db["coop_id"]) == 1

    async def test_farmer_with_order_lines_cannot_be_deleted(self, test_db, seeded_db, count_rows):
        with pytest.raises(RestrictedDeleteError):
            await accounts.delete_user(test_db, seeded_db["farmer_user_id"])

        assert await count_rows(Farmer, Farmer.id == seeded_db["farmer_id"]) == 1
        assert await count_rows(Product) == 2

    async def test_farmer_whose_product_anchors_an_offer_cannot_be_deleted(self, test_db, seeded_db, count_rows):
        user_id, farmer_id, product_id = await self._second_farmer(test_db)
        offer = await offers.create_offer(test_db, seeded_db["coop_id"], Decimal("60.00"), product_id=product_id)
        offer_id = offer.id
        await test_db.commit()

        with pytest.raises(OfferTargetMissingError):
            await accounts.delete_user(test_db, user_id)

        assert await count_rows(Farmer, Farmer.id == farmer_id) == 1
        row = (
            await test_db.execute(
                select(CoopProductOffer.product_id, CoopProductOffer.category_id).where(CoopProductOffer.id == offer_id)
            )
        ).one()
        assert row.product_id == product_id
        assert row.category_id is None

    async def test_offer_with_category_survives_farmer_delete(self, test_db, seeded_db, count_rows):
        user_id, _, product_id = await self._second_farmer(test_db)
        offer = await offers.create_offer(
            test_db,
            seeded_db["coop_id"],
            Decimal("60.00"),
            product_id=product_id,
            category_id=seeded_db["maize_category_id"],
        )
        offer_id = offer.id
        await test_db.commit()

        await accounts.delete_user(test_db, user_id)
        await test_db.commit()

        row = (
            await test_db.execute(
                select(CoopProductOffer.product_id, CoopProductOffer.category_id).where(CoopProductOffer.id == offer_id)
            )
        ).one()
        assert row.product_id is None
        assert row.category_id == seeded_db["maize_category_id"]

    async def test_coop_delete_cascades_orders_and_offers(self, test_db, seeded_db, count_rows):
        await accounts.delete_user(test_db, seeded_db["coop_user_id"])
        await test_db.commit()

        assert await count_rows(CoopProductOffer) == 0
        assert await count_rows(Order) == 0
        assert await count_rows(OrderItem) == 0
        assert await count_rows(Membership) == 0
        # the farmer's products survive once their order lines are gone
        assert await count_rows(Product) == 2

    async def test_user_delete_removes_their_messages(self, test_db, seeded_db, count_rows):
        await negotiations.send_message(
            test_db, seeded_db["buyer_user_id"], seeded_db["farmer_user_id"], "Any beans left?"
        )
        await test_db.commit()

        await accounts.delete_user(test_db, seeded_db["buyer_user_id"])
        await test_db.commit()
        assert await count_rows(Negotiation) == 0


@pytest.mark.asyncio
class TestDeleteOrder:
    async def test_lines_cascade_and_messages_detach(self, test_db, seeded_db, count_rows):
        entry = await negotiations.send_message(
            test_db,
            seeded_db["coop_user_id"],
            seeded_db["farmer_user_id"],
            "Can you deliver on Friday?",
            order_id=seeded_db["order_id"],
        )
        negotiation_id = entry.id
        await test_db.commit()

        await orders.delete_order(test_db, seeded_db["order_id"])
        await test_db.commit()

        assert await count_rows(OrderItem) == 0
        order_id = await test_db.scalar(select(Negotiation.order_id).where(Negotiation.id == negotiation_id))
        assert order_id is None
        assert await count_rows(Negotiation) == 1

    async def test_product_is_deletable_after_its_order_is_gone(self, test_db, seeded_db, count_rows):
        await orders.delete_order(test_db, seeded_db["order_id"])
        # the seeded offer targets white maize only; give it a category first
        await offers.update_offer(test_db, seeded_db["offer_id"], category_id=seeded_db["maize_category_id"])
        await catalog.delete_product(test_db, seeded_db["white_maize_id"])
        await test_db.commit()

        assert await count_rows(Product, Product.id == seeded_db["white_maize_id"]) == 0
