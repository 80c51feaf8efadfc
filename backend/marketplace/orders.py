"""
Orders and order lines.

Order.status is a flat enum with no transition graph: update_order_status
accepts any member of ORDER_STATUSES regardless of the current value.
Lifecycle rules (cancelled is terminal, etc.) belong to the calling service.

order_items.subtotal is generated by the database from quantity and
unit_price. Every command that writes a line refreshes it afterwards so the
returned object carries the database's value.

Order.total_amount is stored as given. recalculate_order_total() is an
explicit helper for callers that want it to match the lines; nothing calls
it implicitly.
"""

from decimal import Decimal

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.integrity import atomic_write, get_or_raise
from db.models import Order, OrderItem

logger = structlog.get_logger()

# subtotal is listed so a write attempt reaches the model and is rejected there.
_ITEM_FIELDS = {"quantity", "unit_price", "subtotal"}


async def create_order(
    db: AsyncSession,
    order_number: str,
    farmer_id: int,
    coop_id: int,
    status: str = "pending",
    total_amount: Decimal = Decimal("0.00"),
    currency: str | None = None,
) -> Order:
    async with atomic_write(db, "order.create", order_number=order_number):
        order = Order(
            order_number=order_number,
            farmer_id=farmer_id,
            coop_id=coop_id,
            status=status,
            total_amount=total_amount,
            currency=currency or get_settings().default_currency,
        )
        db.add(order)
    logger.info("order.created", order_id=order.id, order_number=order_number, farmer_id=farmer_id, coop_id=coop_id)
    return order


async def update_order_status(db: AsyncSession, order_id: int, status: str) -> Order:
    order = await get_or_raise(db, Order, order_id)
    previous = order.status
    async with atomic_write(db, "order.status", order_id=order_id, status=status):
        order.status = status
    logger.info("order.status_changed", order_id=order_id, previous=previous, status=status)
    return order


async def add_order_item(
    db: AsyncSession,
    order_id: int,
    product_id: int,
    quantity: Decimal,
    unit_price: Decimal,
) -> OrderItem:
    async with atomic_write(db, "order_item.create", order_id=order_id, product_id=product_id):
        item = OrderItem(order_id=order_id, product_id=product_id, quantity=quantity, unit_price=unit_price)
        db.add(item)
    await db.refresh(item)
    logger.info("order_item.created", order_item_id=item.id, order_id=order_id, subtotal=str(item.subtotal))
    return item


async def update_order_item(db: AsyncSession, item_id: int, **changes) -> OrderItem:
    """Change quantity and/or unit_price; a subtotal write raises DerivedColumnWriteError."""
    unknown = set(changes) - _ITEM_FIELDS
    if unknown:
        raise ValueError(f"Unknown order item fields: {sorted(unknown)}")

    item = await get_or_raise(db, OrderItem, item_id)
    async with atomic_write(db, "order_item.update", order_item_id=item_id):
        for field, value in changes.items():
            setattr(item, field, value)
    await db.refresh(item)
    logger.info("order_item.updated", order_item_id=item_id, subtotal=str(item.subtotal))
    return item


async def remove_order_item(db: AsyncSession, item_id: int) -> None:
    await get_or_raise(db, OrderItem, item_id)
    async with atomic_write(db, "order_item.delete", deleting=True, order_item_id=item_id):
        await db.execute(delete(OrderItem).where(OrderItem.id == item_id))
    logger.info("order_item.deleted", order_item_id=item_id)


async def order_lines_total(db: AsyncSession, order_id: int) -> Decimal:
    total = await db.scalar(select(func.coalesce(func.sum(OrderItem.subtotal), 0)).where(OrderItem.order_id == order_id))
    return Decimal(str(total)).quantize(Decimal("0.01"))


async def recalculate_order_total(db: AsyncSession, order_id: int) -> Order:
    """Set total_amount to the sum of the order's line subtotals."""
    order = await get_or_raise(db, Order, order_id)
    total = await order_lines_total(db, order_id)
    async with atomic_write(db, "order.total", order_id=order_id):
        order.total_amount = total
    logger.info("order.total_recalculated", order_id=order_id, total_amount=str(total))
    return order


async def delete_order(db: AsyncSession, order_id: int) -> None:
    """Delete an order; its lines go with it and attached negotiations are detached."""
    await get_or_raise(db, Order, order_id)
    async with atomic_write(db, "order.delete", deleting=True, order_id=order_id):
        await db.execute(delete(Order).where(Order.id == order_id))
    db.expire_all()
    logger.info("order.deleted", order_id=order_id)
