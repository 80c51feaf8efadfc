"""
Price History — append-only log of quoted prices.

price_history.source_id means farmers.id or cooperatives.id depending on
source_type, so the database cannot hold a foreign key for it. PriceSource
is the typed form of that pair; record_price() resolves it against the
right table before writing.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import InvalidPriceSourceError
from db.integrity import atomic_write
from db.models import Cooperative, Farmer, PriceHistory

logger = structlog.get_logger()


@dataclass(frozen=True)
class FarmerSource:
    farmer_id: int

    source_type = "farmer"
    model = Farmer

    @property
    def source_id(self) -> int:
        return self.farmer_id


@dataclass(frozen=True)
class CoopSource:
    coop_id: int

    source_type = "coop"
    model = Cooperative

    @property
    def source_id(self) -> int:
        return self.coop_id


PriceSource = FarmerSource | CoopSource


def source_from_row(row: PriceHistory) -> PriceSource:
    """Rebuild the typed source of a stored price-history row."""
    if row.source_type == "farmer":
        return FarmerSource(row.source_id)
    if row.source_type == "coop":
        return CoopSource(row.source_id)
    raise InvalidPriceSourceError(f"Unknown price source type {row.source_type!r}", table="price_history")


async def validate_source(db: AsyncSession, source: PriceSource) -> None:
    if not isinstance(source, (FarmerSource, CoopSource)):
        raise InvalidPriceSourceError(f"Unsupported price source {source!r}", table="price_history")
    if await db.get(source.model, source.source_id) is None:
        raise InvalidPriceSourceError(
            f"{source.source_type} {source.source_id} does not exist",
            table="price_history",
            constraint="source_id",
        )


async def record_price(
    db: AsyncSession,
    product_id: int,
    source: PriceSource,
    price_per_unit: Decimal,
    currency: str | None = None,
) -> PriceHistory:
    await validate_source(db, source)
    async with atomic_write(db, "price.record", product_id=product_id, source_type=source.source_type):
        entry = PriceHistory(
            product_id=product_id,
            source_type=source.source_type,
            source_id=source.source_id,
            price_per_unit=price_per_unit,
            currency=currency or get_settings().default_currency,
        )
        db.add(entry)
    logger.info(
        "price.recorded",
        price_id=entry.id,
        product_id=product_id,
        source_type=source.source_type,
        source_id=source.source_id,
    )
    return entry


async def price_history_for(db: AsyncSession, product_id: int) -> list[PriceHistory]:
    """Newest first."""
    result = await db.execute(
        select(PriceHistory)
        .where(PriceHistory.product_id == product_id)
        .order_by(PriceHistory.recorded_at.desc(), PriceHistory.id.desc())
    )
    return list(result.scalars().all())
