"""
Accounts — users, farmer/cooperative profiles and memberships.

Profiles hang off a user 1:1 and disappear with it. Deleting a user runs
through the database's ON DELETE rules. Two of them can block it: the
RESTRICT key from order_items to products, and an offer that would lose its
only target. Both are checked first so the caller gets a precise error
instead of a driver message.
"""

from decimal import Decimal

import structlog
from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvariantViolation, OfferTargetMissingError, RecordNotFoundError, RestrictedDeleteError
from db.integrity import atomic_write, get_or_raise
from db.models import Cooperative, CoopProductOffer, Farmer, Membership, OrderItem, Product, User

logger = structlog.get_logger()

_USER_FIELDS = {"username", "email", "password_hash", "role"}


async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
    role: str = "farmer",
) -> User:
    async with atomic_write(db, "user.create", username=username):
        user = User(username=username, email=email, password_hash=password_hash, role=role)
        db.add(user)
    logger.info("user.created", user_id=user.id, role=user.role)
    return user


async def update_user(db: AsyncSession, user_id: int, **changes) -> User:
    unknown = set(changes) - _USER_FIELDS
    if unknown:
        raise ValueError(f"Unknown user fields: {sorted(unknown)}")

    user = await get_or_raise(db, User, user_id)
    async with atomic_write(db, "user.update", user_id=user_id):
        for field, value in changes.items():
            setattr(user, field, value)
    logger.info("user.updated", user_id=user_id, fields=sorted(changes))
    return user


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Delete a user and everything the schema cascades from it.

    Farmer profile -> products, memberships, orders (-> order items),
    price history, inventory. Cooperative profile -> offers, memberships,
    orders. Negotiations sent or received by the user go too.

    Checks run in the same order as catalog.delete_product, across all of
    the farmer's products:

    - RestrictedDeleteError when any order line references one of them;
      those lines have to be removed first.
    - OfferTargetMissingError when an offer targets one of them and has no
      category, since SET NULL would leave it without a target.
    """
    await get_or_raise(db, User, user_id)

    blocking = await db.scalar(
        select(OrderItem.id)
        .join(Product, OrderItem.product_id == Product.id)
        .join(Farmer, Product.farmer_id == Farmer.id)
        .where(Farmer.user_id == user_id)
        .limit(1)
    )
    if blocking is not None:
        logger.warning("user.delete_rejected", user_id=user_id, order_item_id=blocking)
        raise RestrictedDeleteError(
            f"User {user_id} owns products referenced by order items",
            table="order_items",
            constraint="order_items.product_id",
        )

    orphaned = await db.scalars(
        select(CoopProductOffer.id)
        .join(Product, CoopProductOffer.product_id == Product.id)
        .join(Farmer, Product.farmer_id == Farmer.id)
        .where(Farmer.user_id == user_id, CoopProductOffer.category_id.is_(None))
    )
    orphaned_ids = list(orphaned)
    if orphaned_ids:
        logger.warning("user.delete_rejected", user_id=user_id, offer_ids=orphaned_ids)
        raise OfferTargetMissingError(
            f"Deleting user {user_id} would leave offers {orphaned_ids} without a product or category"
        )

    async with atomic_write(db, "user.delete", deleting=True, user_id=user_id):
        await db.execute(delete(User).where(User.id == user_id))
    db.expire_all()
    logger.info("user.deleted", user_id=user_id)


async def create_farmer_profile(
    db: AsyncSession,
    user_id: int,
    full_name: str,
    phone: str | None = None,
    village: str | None = None,
    latitude: Decimal | None = None,
    longitude: Decimal | None = None,
) -> Farmer:
    await _require_role(db, user_id, "farmer")
    async with atomic_write(db, "farmer.create", user_id=user_id):
        farmer = Farmer(
            user_id=user_id,
            full_name=full_name,
            phone=phone,
            village=village,
            latitude=latitude,
            longitude=longitude,
        )
        db.add(farmer)
    logger.info("farmer.created", farmer_id=farmer.id, user_id=user_id)
    return farmer


async def create_cooperative_profile(
    db: AsyncSession,
    user_id: int,
    coop_name: str,
    registration_number: str | None = None,
    contact_phone: str | None = None,
    address: str | None = None,
    latitude: Decimal | None = None,
    longitude: Decimal | None = None,
) -> Cooperative:
    await _require_role(db, user_id, "coop")
    async with atomic_write(db, "cooperative.create", user_id=user_id):
        coop = Cooperative(
            user_id=user_id,
            coop_name=coop_name,
            registration_number=registration_number,
            contact_phone=contact_phone,
            address=address,
            latitude=latitude,
            longitude=longitude,
        )
        db.add(coop)
    logger.info("cooperative.created", coop_id=coop.id, user_id=user_id)
    return coop


async def add_membership(db: AsyncSession, farmer_id: int, coop_id: int, role_in_coop: str = "member") -> Membership:
    async with atomic_write(db, "membership.create", farmer_id=farmer_id, coop_id=coop_id):
        membership = Membership(farmer_id=farmer_id, coop_id=coop_id, role_in_coop=role_in_coop)
        db.add(membership)
    logger.info("membership.created", farmer_id=farmer_id, coop_id=coop_id, role_in_coop=role_in_coop)
    return membership


async def remove_membership(db: AsyncSession, farmer_id: int, coop_id: int) -> None:
    found = await db.scalar(
        select(exists().where(Membership.farmer_id == farmer_id, Membership.coop_id == coop_id))
    )
    if not found:
        raise RecordNotFoundError(f"No membership for farmer {farmer_id} in coop {coop_id}")
    async with atomic_write(db, "membership.delete", farmer_id=farmer_id, coop_id=coop_id):
        await db.execute(delete(Membership).where(Membership.farmer_id == farmer_id, Membership.coop_id == coop_id))
    logger.info("membership.deleted", farmer_id=farmer_id, coop_id=coop_id)


async def _require_role(db: AsyncSession, user_id: int, role: str) -> None:
    user = await get_or_raise(db, User, user_id)
    if user.role != role:
        raise InvariantViolation(
            f"User {user_id} has role '{user.role}', a {role} profile needs role '{role}'",
            table="users",
            constraint="role",
        )

