"""Negotiations — direct messages between users, optionally about an order."""

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.integrity import atomic_write, get_or_raise
from db.models import Negotiation

logger = structlog.get_logger()


async def send_message(
    db: AsyncSession,
    sender_user_id: int,
    receiver_user_id: int,
    message: str,
    order_id: int | None = None,
) -> Negotiation:
    if not message or not message.strip():
        raise ValueError("message must not be empty")

    async with atomic_write(db, "negotiation.send", sender=sender_user_id, receiver=receiver_user_id):
        entry = Negotiation(
            sender_user_id=sender_user_id,
            receiver_user_id=receiver_user_id,
            message=message,
            order_id=order_id,
        )
        db.add(entry)
    logger.info("negotiation.sent", negotiation_id=entry.id, order_id=order_id)
    return entry


async def mark_read(db: AsyncSession, negotiation_id: int) -> Negotiation:
    entry = await get_or_raise(db, Negotiation, negotiation_id)
    if entry.read_at is None:
        async with atomic_write(db, "negotiation.read", negotiation_id=negotiation_id):
            entry.read_at = datetime.now(timezone.utc).replace(tzinfo=None)
    return entry


async def thread_for_order(db: AsyncSession, order_id: int) -> list[Negotiation]:
    """Messages attached to an order, oldest first."""
    result = await db.execute(
        select(Negotiation)
        .where(Negotiation.order_id == order_id)
        .order_by(Negotiation.sent_at, Negotiation.id)
    )
    return list(result.scalars().all())


async def conversation(db: AsyncSession, user_a: int, user_b: int) -> list[Negotiation]:
    """Every message exchanged between two users in either direction, oldest first."""
    result = await db.execute(
        select(Negotiation)
        .where(
            ((Negotiation.sender_user_id == user_a) & (Negotiation.receiver_user_id == user_b))
            | ((Negotiation.sender_user_id == user_b) & (Negotiation.receiver_user_id == user_a))
        )
        .order_by(Negotiation.sent_at, Negotiation.id)
    )
    return list(result.scalars().all())
