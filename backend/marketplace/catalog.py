"""
Catalog — categories, products and inventory.

Product deletion touches three dependent tables with three different
rules. They are evaluated in a fixed order:

1. order_items (RESTRICT): any reference rejects the delete.
2. coop_product_offers (SET NULL): an offer left with neither product
   nor category would break the offer invariant, so the delete is
   rejected instead.
3. inventory, price_history (CASCADE): removed with the product.

Category deletion only has SET NULL dependents (products, offers) and is
subject to the same offer check as step 2.
"""

from decimal import Decimal

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import OfferTargetMissingError, RestrictedDeleteError
from db.integrity import atomic_write, get_or_raise
from db.models import Category, CoopProductOffer, Inventory, OrderItem, Product

logger = structlog.get_logger()

_PRODUCT_FIELDS = {"name", "description", "unit", "category_id"}


async def create_category(db: AsyncSession, name: str, description: str | None = None) -> Category:
    async with atomic_write(db, "category.create", name=name):
        category = Category(name=name, description=description)
        db.add(category)
    logger.info("category.created", category_id=category.id, name=name)
    return category


async def delete_category(db: AsyncSession, category_id: int) -> None:
    await get_or_raise(db, Category, category_id)

    orphaned = await db.scalars(
        select(CoopProductOffer.id).where(
            CoopProductOffer.category_id == category_id,
            CoopProductOffer.product_id.is_(None),
        )
    )
    orphaned_ids = list(orphaned)
    if orphaned_ids:
        logger.warning("category.delete_rejected", category_id=category_id, offer_ids=orphaned_ids)
        raise OfferTargetMissingError(
            f"Deleting category {category_id} would leave offers {orphaned_ids} without a product or category"
        )

    async with atomic_write(db, "category.delete", deleting=True, category_id=category_id):
        await db.execute(delete(Category).where(Category.id == category_id))
    db.expire_all()
    logger.info("category.deleted", category_id=category_id)


async def create_product(
    db: AsyncSession,
    farmer_id: int,
    name: str,
    unit: str,
    category_id: int | None = None,
    description: str | None = None,
) -> Product:
    async with atomic_write(db, "product.create", farmer_id=farmer_id, name=name):
        product = Product(
            farmer_id=farmer_id,
            category_id=category_id,
            name=name,
            unit=unit,
            description=description,
        )
        db.add(product)
    logger.info("product.created", product_id=product.id, farmer_id=farmer_id)
    return product


async def update_product(db: AsyncSession, product_id: int, **changes) -> Product:
    unknown = set(changes) - _PRODUCT_FIELDS
    if unknown:
        raise ValueError(f"Unknown product fields: {sorted(unknown)}")

    product = await get_or_raise(db, Product, product_id)
    async with atomic_write(db, "product.update", product_id=product_id):
        for field, value in changes.items():
            setattr(product, field, value)
    logger.info("product.updated", product_id=product_id, fields=sorted(changes))
    return product


async def delete_product(db: AsyncSession, product_id: int) -> None:
    """Delete a product, applying the dependent-row rules in module order."""
    await get_or_raise(db, Product, product_id)

    referencing_item = await db.scalar(select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1))
    if referencing_item is not None:
        logger.warning("product.delete_rejected", product_id=product_id, order_item_id=referencing_item)
        raise RestrictedDeleteError(
            f"Product {product_id} is referenced by order items",
            table="order_items",
            constraint="order_items.product_id",
        )

    orphaned = await db.scalars(
        select(CoopProductOffer.id).where(
            CoopProductOffer.product_id == product_id,
            CoopProductOffer.category_id.is_(None),
        )
    )
    orphaned_ids = list(orphaned)
    if orphaned_ids:
        logger.warning("product.delete_rejected", product_id=product_id, offer_ids=orphaned_ids)
        raise OfferTargetMissingError(
            f"Deleting product {product_id} would leave offers {orphaned_ids} without a product or category"
        )

    async with atomic_write(db, "product.delete", deleting=True, product_id=product_id):
        await db.execute(delete(Product).where(Product.id == product_id))
    db.expire_all()
    logger.info("product.deleted", product_id=product_id)


async def set_inventory(db: AsyncSession, product_id: int, available_quantity: Decimal) -> Inventory:
    """Upsert the inventory row for a product. Orders never touch it."""
    inventory = await db.scalar(select(Inventory).where(Inventory.product_id == product_id))
    async with atomic_write(db, "inventory.set", product_id=product_id):
        if inventory is None:
            inventory = Inventory(product_id=product_id, available_quantity=available_quantity)
            db.add(inventory)
        else:
            inventory.available_quantity = available_quantity
    logger.info("inventory.set", product_id=product_id, available_quantity=str(available_quantity))
    return inventory
