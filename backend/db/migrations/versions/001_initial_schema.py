"""
Initial schema - 12 tables and 3 reporting views

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from db.models import SUBTOTAL_SQL
from db.views import VIEWS, create_view_sql, drop_view_sql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    # 1. Users
    op.create_table(
        "users",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="farmer"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('farmer', 'coop', 'buyer', 'admin')", name="ck_user_role"),
    )

    # 2. Farmers
    op.create_table(
        "farmers",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("user_id", ID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("full_name", sa.String(150), nullable=False),
        sa.Column("phone", sa.String(30)),
        sa.Column("village", sa.String(150)),
        sa.Column("latitude", sa.Numeric(9, 6)),
        sa.Column("longitude", sa.Numeric(9, 6)),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    # 3. Cooperatives
    op.create_table(
        "cooperatives",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("user_id", ID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("coop_name", sa.String(200), nullable=False),
        sa.Column("registration_number", sa.String(100), unique=True),
        sa.Column("contact_phone", sa.String(30)),
        sa.Column("address", sa.String(255)),
        sa.Column("latitude", sa.Numeric(9, 6)),
        sa.Column("longitude", sa.Numeric(9, 6)),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    # 4. Memberships
    op.create_table(
        "farmer_coop_memberships",
        sa.Column("farmer_id", ID, sa.ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("coop_id", ID, sa.ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False),
        sa.Column("joined_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("role_in_coop", sa.String(10), server_default="member"),
        sa.PrimaryKeyConstraint("farmer_id", "coop_id", name="pk_farmer_coop_membership"),
        sa.CheckConstraint("role_in_coop IN ('member', 'officer')", name="ck_membership_role"),
    )

    # 5. Categories
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text),
    )

    # 6. Products
    op.create_table(
        "products",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("farmer_id", ID, sa.ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id", ondelete="SET NULL")),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_products_farmer", "products", ["farmer_id"])

    # 7. Cooperative offers
    op.create_table(
        "coop_product_offers",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("coop_id", ID, sa.ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", ID, sa.ForeignKey("products.id", ondelete="SET NULL"), nullable=True),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("price_per_unit", sa.Numeric(12, 2), nullable=False),
        sa.Column("min_quantity", sa.Numeric(12, 2), server_default="0"),
        sa.Column("max_quantity", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.CHAR(3), server_default="KES"),
        sa.Column("active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("product_id IS NOT NULL OR category_id IS NOT NULL", name="ck_offer_has_target"),
    )
    op.create_index("idx_offers_coop", "coop_product_offers", ["coop_id"])

    # 8. Orders
    op.create_table(
        "orders",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("order_number", sa.String(50), nullable=False, unique=True),
        sa.Column("farmer_id", ID, sa.ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("coop_id", ID, sa.ForeignKey("cooperatives.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(12), server_default="pending"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0.00"),
        sa.Column("currency", sa.CHAR(3), server_default="KES"),
        sa.Column("placed_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'in_transit', 'completed', 'cancelled')",
            name="ck_order_status",
        ),
    )
    op.create_index("idx_orders_coop", "orders", ["coop_id"])
    op.create_index("idx_orders_farmer", "orders", ["farmer_id"])

    # 9. Order items (subtotal generated by the database)
    op.create_table(
        "order_items",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("order_id", ID, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", ID, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(14, 2), sa.Computed(SUBTOTAL_SQL, persisted=True)),
    )

    # 10. Inventory
    op.create_table(
        "inventory",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("product_id", ID, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("available_quantity", sa.Numeric(12, 3), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime, server_default=sa.func.now()),
    )

    # 11. Price history (source_id is polymorphic on source_type, no FK)
    op.create_table(
        "price_history",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("product_id", ID, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_type", sa.String(10), nullable=False),
        sa.Column("source_id", ID, nullable=False),
        sa.Column("price_per_unit", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.CHAR(3), server_default="KES"),
        sa.Column("recorded_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("source_type IN ('farmer', 'coop')", name="ck_price_source_type"),
    )

    # 12. Negotiations
    op.create_table(
        "negotiations",
        sa.Column("id", ID, primary_key=True, autoincrement=True),
        sa.Column("order_id", ID, sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sender_user_id", ID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("receiver_user_id", ID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("sent_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("read_at", sa.DateTime, nullable=True),
    )

    # Reporting views
    for name in VIEWS:
        op.execute(create_view_sql(name))


def downgrade() -> None:
    for name in reversed(list(VIEWS)):
        op.execute(drop_view_sql(name))

    for table in (
        "negotiations",
        "price_history",
        "inventory",
        "order_items",
        "orders",
        "coop_product_offers",
        "products",
        "categories",
        "farmer_coop_memberships",
        "cooperatives",
        "farmers",
        "users",
    ):
        op.drop_table(table)
