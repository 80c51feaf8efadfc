"""
Reports — read-only projections over the database views.

Each iterator streams rows straight from the view, so results always
reflect live data. Iterators are single-pass; calling the function again
starts a fresh query.
"""

from collections.abc import AsyncIterator

from sqlalchemy import select
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from db.views import active_offers, coop_purchase_history, farmer_sales_history


async def _stream(db: AsyncSession, stmt) -> AsyncIterator[RowMapping]:
    result = await db.stream(stmt)
    async for row in result.mappings():
        yield row


def iter_active_offers(
    db: AsyncSession,
    coop_id: int | None = None,
    product_id: int | None = None,
) -> AsyncIterator[RowMapping]:
    """Active offers with their cooperative's name, by offer id."""
    stmt = select(active_offers)
    if coop_id is not None:
        stmt = stmt.where(active_offers.c.coop_id == coop_id)
    if product_id is not None:
        stmt = stmt.where(active_offers.c.product_id == product_id)
    return _stream(db, stmt.order_by(active_offers.c.offer_id))


def iter_farmer_sales_history(db: AsyncSession, farmer_id: int | None = None) -> AsyncIterator[RowMapping]:
    """One row per order line, newest order first."""
    view = farmer_sales_history
    stmt = select(view)
    if farmer_id is not None:
        stmt = stmt.where(view.c.farmer_id == farmer_id)
    return _stream(db, stmt.order_by(view.c.placed_at.desc(), view.c.order_number))


def iter_coop_purchase_history(db: AsyncSession, coop_id: int | None = None) -> AsyncIterator[RowMapping]:
    """One row per order line, newest order first."""
    view = coop_purchase_history
    stmt = select(view)
    if coop_id is not None:
        stmt = stmt.where(view.c.coop_id == coop_id)
    return _stream(db, stmt.order_by(view.c.placed_at.desc(), view.c.order_number))
