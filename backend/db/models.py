"""
CoopMarket Database Models

12 tables for the farmer <-> cooperative marketplace.

Tables:
  Accounts (1-4):
  1. users                    - Every account (farmer, coop, buyer, admin)
  2. farmers                  - Farmer profile, 1:1 with a farmer user
  3. cooperatives             - Cooperative profile, 1:1 with a coop user
  4. farmer_coop_memberships  - Farmer <-> cooperative affiliation

  Catalog (5-6, 10-11):
  5. categories               - Product category lookup
  6. products                 - Produce listed by farmers
  10. inventory               - Available quantity per product
  11. price_history           - Append-only log of quoted prices

  Trade (7-9, 12):
  7. coop_product_offers      - Standing buy offers by cooperatives
  8. orders                   - Farmer -> cooperative orders
  9. order_items              - Order lines (subtotal is generated)
  12. negotiations            - Messages between users

Deletion policy is part of the contract:
  - profiles, memberships, products, orders die with their owner (CASCADE)
  - offers survive product/category deletion (SET NULL)
  - order lines pin their products: a product referenced by an order
    line cannot be deleted (RESTRICT)
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CHAR,
    CheckConstraint,
    Column,
    Computed,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Text,
    event,
    func,
    true,
)
from sqlalchemy.orm import relationship, validates

from core.errors import DerivedColumnWriteError, EnumDomainError, OfferTargetMissingError
from db.session import Base

# BIGINT everywhere except SQLite, where only INTEGER PRIMARY KEY autoincrements.
BigIntId = BigInteger().with_variant(Integer(), "sqlite")

USER_ROLES = ("farmer", "coop", "buyer", "admin")
MEMBERSHIP_ROLES = ("member", "officer")
ORDER_STATUSES = ("pending", "accepted", "in_transit", "completed", "cancelled")
PRICE_SOURCE_TYPES = ("farmer", "coop")

DEFAULT_CURRENCY = "KES"

# Precision of every stored number, shared with the migration.
Money = Numeric(12, 2)
Amount = Numeric(14, 2)
Quantity = Numeric(12, 3)
Coordinate = Numeric(9, 6)

# quantity * unit_price rounded half-up to cents. Worked in integer thousandths
# and cents so SQLite, which stores REAL, rounds the same way as NUMERIC.
SUBTOTAL_SQL = "(CAST(ROUND(quantity * 1000) AS BIGINT) * CAST(ROUND(unit_price * 100) AS BIGINT) + 500) / 1000 / 100.0"


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


def _check_domain(field: str, value, domain: tuple[str, ...]):
    if value is not None and value not in domain:
        raise EnumDomainError(f"{field} must be one of {list(domain)}, got {value!r}", constraint=field)
    return value


# ─── 1. Users ──────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(10), nullable=False, default="farmer", server_default="farmer")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint(_in_list("role", USER_ROLES), name="ck_user_role"),)

    farmer = relationship("Farmer", back_populates="user", uselist=False, passive_deletes=True)
    cooperative = relationship("Cooperative", back_populates="user", uselist=False, passive_deletes=True)

    @validates("role")
    def _validate_role(self, key, value):
        return _check_domain(key, value, USER_ROLES)


# ─── 2. Farmers ────────────────────────────────────────────────────────────


class Farmer(Base):
    __tablename__ = "farmers"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    user_id = Column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    full_name = Column(String(150), nullable=False)
    phone = Column(String(30))
    village = Column(String(150))
    latitude = Column(Coordinate)
    longitude = Column(Coordinate)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="farmer")
    products = relationship("Product", back_populates="farmer", passive_deletes=True)
    memberships = relationship("Membership", back_populates="farmer", passive_deletes=True)


# ─── 3. Cooperatives ───────────────────────────────────────────────────────


class Cooperative(Base):
    __tablename__ = "cooperatives"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    user_id = Column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    coop_name = Column(String(200), nullable=False)
    registration_number = Column(String(100), unique=True)
    contact_phone = Column(String(30))
    address = Column(String(255))
    latitude = Column(Coordinate)
    longitude = Column(Coordinate)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="cooperative")
    memberships = relationship("Membership", back_populates="cooperative", passive_deletes=True)
    offers = relationship("CoopProductOffer", back_populates="cooperative", passive_deletes=True)


# ─── 4. Memberships ────────────────────────────────────────────────────────


class Membership(Base):
    __tablename__ = "farmer_coop_memberships"

    farmer_id = Column(BigIntId, ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False)
    coop_id = Column(BigIntId, ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False)
    joined_at = Column(DateTime, server_default=func.now())
    role_in_coop = Column(String(10), default="member", server_default="member")

    __table_args__ = (
        PrimaryKeyConstraint("farmer_id", "coop_id", name="pk_farmer_coop_membership"),
        CheckConstraint(_in_list("role_in_coop", MEMBERSHIP_ROLES), name="ck_membership_role"),
    )

    farmer = relationship("Farmer", back_populates="memberships")
    cooperative = relationship("Cooperative", back_populates="memberships")

    @validates("role_in_coop")
    def _validate_role(self, key, value):
        return _check_domain(key, value, MEMBERSHIP_ROLES)


# ─── 5. Categories ─────────────────────────────────────────────────────────


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)


# ─── 6. Products ───────────────────────────────────────────────────────────


class Product(Base):
    __tablename__ = "products"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    farmer_id = Column(BigIntId, ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"))
    name = Column(String(150), nullable=False)
    description = Column(Text)
    unit = Column(String(50), nullable=False)  # kg, bag, litre
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (Index("idx_products_farmer", "farmer_id"),)

    farmer = relationship("Farmer", back_populates="products")
    category = relationship("Category")
    inventory = relationship("Inventory", back_populates="product", uselist=False, passive_deletes=True)


# ─── 7. Cooperative Offers ─────────────────────────────────────────────────


class CoopProductOffer(Base):
    """
    A cooperative's standing bid for a product, or for anything in a category.

    At least one of product_id / category_id is set at all times. The rule
    is checked by the ORM on every flushed insert or update and by the
    database CHECK constraint for writes that bypass the ORM, including the
    SET NULL actions fired by deleting a product or category.
    """

    __tablename__ = "coop_product_offers"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    coop_id = Column(BigIntId, ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(BigIntId, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    price_per_unit = Column(Money, nullable=False)
    min_quantity = Column(Money, default=0, server_default="0")
    max_quantity = Column(Money, nullable=True)
    currency = Column(CHAR(3), default=DEFAULT_CURRENCY, server_default=DEFAULT_CURRENCY)
    active = Column(Boolean, default=True, server_default=true())
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_offers_coop", "coop_id"),
        CheckConstraint(
            "product_id IS NOT NULL OR category_id IS NOT NULL",
            name="ck_offer_has_target",
        ),
    )

    cooperative = relationship("Cooperative", back_populates="offers")
    product = relationship("Product")
    category = relationship("Category")

    @property
    def has_target(self) -> bool:
        return self.product_id is not None or self.category_id is not None


@event.listens_for(CoopProductOffer, "before_insert")
@event.listens_for(CoopProductOffer, "before_update")
def _require_offer_target(mapper, connection, target: CoopProductOffer) -> None:
    if not target.has_target:
        raise OfferTargetMissingError()


# ─── 8. Orders ─────────────────────────────────────────────────────────────


class Order(Base):
    """
    A farmer selling to a cooperative.

    status is a flat enum: any value may replace any other. total_amount is
    stored as given; it is not derived from the order lines.
    """

    __tablename__ = "orders"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True)
    farmer_id = Column(BigIntId, ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False)
    coop_id = Column(BigIntId, ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(12), default="pending", server_default="pending")
    total_amount = Column(Amount, nullable=False, default=0, server_default="0.00")
    currency = Column(CHAR(3), default=DEFAULT_CURRENCY, server_default=DEFAULT_CURRENCY)
    placed_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_orders_coop", "coop_id"),
        Index("idx_orders_farmer", "farmer_id"),
        CheckConstraint(_in_list("status", ORDER_STATUSES), name="ck_order_status"),
    )

    items = relationship("OrderItem", back_populates="order", passive_deletes=True)

    @validates("status")
    def _validate_status(self, key, value):
        return _check_domain(key, value, ORDER_STATUSES)


# ─── 9. Order Items ────────────────────────────────────────────────────────


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    order_id = Column(BigIntId, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(BigIntId, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Quantity, nullable=False)
    unit_price = Column(Money, nullable=False)
    subtotal = Column(Amount, Computed(SUBTOTAL_SQL, persisted=True))

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @validates("subtotal")
    def _reject_subtotal_write(self, key, value):
        raise DerivedColumnWriteError(
            "order_items.subtotal is generated from quantity * unit_price",
            table="order_items",
            constraint="subtotal",
        )


# ─── 10. Inventory ─────────────────────────────────────────────────────────


class Inventory(Base):
    """Available stock per product. Not decremented by orders."""

    __tablename__ = "inventory"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    product_id = Column(BigIntId, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, unique=True)
    available_quantity = Column(Quantity, nullable=False, default=0, server_default="0")
    last_updated = Column(DateTime, server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="inventory")


# ─── 11. Price History ─────────────────────────────────────────────────────


class PriceHistory(Base):
    """
    Append-only audit of quoted prices.

    source_id is farmers.id when source_type='farmer' and cooperatives.id
    when source_type='coop'. There is no foreign key on it; see
    marketplace.pricing for the application-side check.
    """

    __tablename__ = "price_history"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    product_id = Column(BigIntId, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    source_type = Column(String(10), nullable=False)
    source_id = Column(BigIntId, nullable=False)
    price_per_unit = Column(Money, nullable=False)
    currency = Column(CHAR(3), default=DEFAULT_CURRENCY, server_default=DEFAULT_CURRENCY)
    recorded_at = Column(DateTime, server_default=func.now())

    __table_args__ = (CheckConstraint(_in_list("source_type", PRICE_SOURCE_TYPES), name="ck_price_source_type"),)

    @validates("source_type")
    def _validate_source_type(self, key, value):
        return _check_domain(key, value, PRICE_SOURCE_TYPES)


# ─── 12. Negotiations ──────────────────────────────────────────────────────


class Negotiation(Base):
    __tablename__ = "negotiations"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    order_id = Column(BigIntId, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    sender_user_id = Column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_user_id = Column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    sent_at = Column(DateTime, server_default=func.now())
    read_at = Column(DateTime, nullable=True)
