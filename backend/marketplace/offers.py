"""
Offers — cooperative standing bids.

An offer targets a product, a category, or both. The at-least-one rule is
enforced by the model's flush hooks and the ck_offer_has_target constraint;
these commands only add the lookups and logging around a single SAVEPOINT.
"""

from decimal import Decimal

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.integrity import atomic_write, get_or_raise
from db.models import CoopProductOffer

logger = structlog.get_logger()

_OFFER_FIELDS = {
    "product_id",
    "category_id",
    "price_per_unit",
    "min_quantity",
    "max_quantity",
    "currency",
    "active",
}


async def create_offer(
    db: AsyncSession,
    coop_id: int,
    price_per_unit: Decimal,
    product_id: int | None = None,
    category_id: int | None = None,
    min_quantity: Decimal = Decimal("0"),
    max_quantity: Decimal | None = None,
    currency: str | None = None,
    active: bool = True,
) -> CoopProductOffer:
    async with atomic_write(db, "offer.create", coop_id=coop_id, product_id=product_id, category_id=category_id):
        offer = CoopProductOffer(
            coop_id=coop_id,
            product_id=product_id,
            category_id=category_id,
            price_per_unit=price_per_unit,
            min_quantity=min_quantity,
            max_quantity=max_quantity,
            currency=currency or get_settings().default_currency,
            active=active,
        )
        db.add(offer)
    logger.info("offer.created", offer_id=offer.id, coop_id=coop_id)
    return offer


async def update_offer(db: AsyncSession, offer_id: int, **changes) -> CoopProductOffer:
    """
    Apply column changes to an offer.

    The product/category rule is re-evaluated against the resulting row
    no matter which columns changed.
    """
    unknown = set(changes) - _OFFER_FIELDS
    if unknown:
        raise ValueError(f"Unknown offer fields: {sorted(unknown)}")

    offer = await get_or_raise(db, CoopProductOffer, offer_id)
    async with atomic_write(db, "offer.update", offer_id=offer_id):
        for field, value in changes.items():
            setattr(offer, field, value)
    logger.info("offer.updated", offer_id=offer_id, fields=sorted(changes))
    return offer


async def deactivate_offer(db: AsyncSession, offer_id: int) -> CoopProductOffer:
    return await update_offer(db, offer_id, active=False)


async def delete_offer(db: AsyncSession, offer_id: int) -> None:
    await get_or_raise(db, CoopProductOffer, offer_id)
    async with atomic_write(db, "offer.delete", deleting=True, offer_id=offer_id):
        await db.execute(delete(CoopProductOffer).where(CoopProductOffer.id == offer_id))
    logger.info("offer.deleted", offer_id=offer_id)
