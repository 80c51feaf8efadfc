"""
CoopMarket Reporting Views

Read-only projections consumed by reporting tools. The SQL below is the
single source for both the Alembic migration and metadata.create_all(),
so every database built from this package exposes the same views.
"""

from sqlalchemy import CHAR, DDL, BigInteger, Boolean, DateTime, String, column, event, table

from db.models import Amount, Money, Quantity
from db.session import Base

ACTIVE_OFFERS_SQL = """
SELECT
    o.id AS offer_id,
    c.coop_name,
    o.coop_id,
    o.product_id,
    o.category_id,
    o.price_per_unit,
    o.min_quantity,
    o.max_quantity,
    o.currency,
    o.active
FROM coop_product_offers o
JOIN cooperatives c ON o.coop_id = c.id
WHERE o.active = TRUE
"""

FARMER_SALES_HISTORY_SQL = """
SELECT
    f.id AS farmer_id,
    f.full_name AS farmer_name,
    c.coop_name,
    p.name AS product_name,
    oi.quantity,
    oi.unit_price,
    oi.subtotal,
    o.order_number,
    o.status AS order_status,
    o.total_amount,
    o.placed_at
FROM orders o
JOIN farmers f ON o.farmer_id = f.id
JOIN cooperatives c ON o.coop_id = c.id
JOIN order_items oi ON o.id = oi.order_id
JOIN products p ON oi.product_id = p.id
ORDER BY o.placed_at DESC
"""

COOP_PURCHASE_HISTORY_SQL = """
SELECT
    c.id AS coop_id,
    c.coop_name,
    f.full_name AS farmer_name,
    p.name AS product_name,
    oi.quantity,
    oi.unit_price,
    oi.subtotal,
    o.order_number,
    o.status AS order_status,
    o.total_amount,
    o.placed_at
FROM orders o
JOIN cooperatives c ON o.coop_id = c.id
JOIN farmers f ON o.farmer_id = f.id
JOIN order_items oi ON o.id = oi.order_id
JOIN products p ON oi.product_id = p.id
ORDER BY o.placed_at DESC
"""

# Creation order; dropped in reverse.
VIEWS = {
    "active_offers": ACTIVE_OFFERS_SQL,
    "farmer_sales_history": FARMER_SALES_HISTORY_SQL,
    "coop_purchase_history": COOP_PURCHASE_HISTORY_SQL,
}


def create_view_sql(name: str) -> str:
    return f"CREATE VIEW {name} AS {VIEWS[name].strip()}"


def drop_view_sql(name: str) -> str:
    return f"DROP VIEW IF EXISTS {name}"


for _name in VIEWS:
    event.listen(Base.metadata, "after_create", DDL(create_view_sql(_name)))
for _name in reversed(list(VIEWS)):
    event.listen(Base.metadata, "before_drop", DDL(drop_view_sql(_name)))


# Selectable handles for querying the views. They live outside
# Base.metadata so create_all() never mistakes them for tables.

active_offers = table(
    "active_offers",
    column("offer_id", BigInteger),
    column("coop_name", String),
    column("coop_id", BigInteger),
    column("product_id", BigInteger),
    column("category_id", BigInteger),
    column("price_per_unit", Money),
    column("min_quantity", Money),
    column("max_quantity", Money),
    column("currency", CHAR(3)),
    column("active", Boolean),
)


def _history_columns():
    return (
        column("coop_name", String),
        column("farmer_name", String),
        column("product_name", String),
        column("quantity", Quantity),
        column("unit_price", Money),
        column("subtotal", Amount),
        column("order_number", String),
        column("order_status", String),
        column("total_amount", Amount),
        column("placed_at", DateTime),
    )


farmer_sales_history = table(
    "farmer_sales_history",
    column("farmer_id", BigInteger),
    *_history_columns(),
)

coop_purchase_history = table(
    "coop_purchase_history",
    column("coop_id", BigInteger),
    *_history_columns(),
)
