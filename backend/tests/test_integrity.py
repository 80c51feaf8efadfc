"""
Tests for driver error classification.

PostgreSQL drivers expose a SQLSTATE and the constraint name; SQLite only
gives a message. Both must land on the same error classes.

A rejected command only undoes itself; earlier work in the session stays.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from core.errors import (
    EnumDomainError,
    MarketplaceError,
    OfferTargetMissingError,
    ReferentialIntegrityViolation,
    RestrictedDeleteError,
    UniquenessViolation,
)
from db.integrity import translate_integrity_error
from db.models import Category, CoopProductOffer, User
from marketplace import accounts, catalog, offers


class _PgError(Exception):
    def __init__(self, message, sqlstate, constraint_name=None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.diag = SimpleNamespace(constraint_name=constraint_name)


def _wrap(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, orig)


class TestPostgresClassification:
    def test_unique(self):
        err = translate_integrity_error(_wrap(_PgError("duplicate key", "23505", "users_email_key")))
        assert isinstance(err, UniquenessViolation)
        assert err.constraint == "users_email_key"

    def test_foreign_key_on_insert(self):
        err = translate_integrity_error(_wrap(_PgError("fk", "23503", "order_items_product_id_fkey")))
        assert type(err) is ReferentialIntegrityViolation

    def test_foreign_key_on_delete(self):
        err = translate_integrity_error(_wrap(_PgError("fk", "23503")), deleting=True)
        assert isinstance(err, RestrictedDeleteError)

    def test_restrict(self):
        err = translate_integrity_error(_wrap(_PgError("restrict", "23001")))
        assert isinstance(err, RestrictedDeleteError)

    def test_offer_target_check(self):
        err = translate_integrity_error(_wrap(_PgError("check", "23514", "ck_offer_has_target")))
        assert isinstance(err, OfferTargetMissingError)
        assert err.table == "coop_product_offers"

    def test_other_check(self):
        err = translate_integrity_error(_wrap(_PgError("check", "23514", "ck_order_status")))
        assert isinstance(err, EnumDomainError)
        assert err.constraint == "ck_order_status"

    def test_constraint_name_from_message(self):
        orig = _PgError('violates check constraint "ck_offer_has_target"', "23514")
        orig.diag = None
        assert isinstance(translate_integrity_error(_wrap(orig)), OfferTargetMissingError)

    def test_pgcode_attribute(self):
        orig = Exception("duplicate key")
        orig.pgcode = "23505"
        assert isinstance(translate_integrity_error(_wrap(orig)), UniquenessViolation)

    def test_unclassified_state(self):
        err = translate_integrity_error(_wrap(_PgError("not null", "23502")))
        assert type(err) is MarketplaceError


class TestSqliteClassification:
    @pytest.mark.parametrize(
        ("message", "deleting", "expected"),
        [
            ("UNIQUE constraint failed: users.email", False, UniquenessViolation),
            ("CHECK constraint failed: ck_offer_has_target", False, OfferTargetMissingError),
            ("CHECK constraint failed: ck_user_role", False, EnumDomainError),
            ("FOREIGN KEY constraint failed", False, ReferentialIntegrityViolation),
            ("FOREIGN KEY constraint failed", True, RestrictedDeleteError),
            ("NOT NULL constraint failed: orders.coop_id", False, MarketplaceError),
        ],
    )
    def test_message_classification(self, message, deleting, expected):
        err = translate_integrity_error(_wrap(Exception(message)), deleting=deleting)
        assert type(err) is expected

    def test_unique_reports_table(self):
        err = translate_integrity_error(_wrap(Exception("UNIQUE constraint failed: orders.order_number")))
        assert err.table == "orders"
        assert err.constraint == "orders.order_number"


@pytest.mark.asyncio
class TestRejectedCommandKeepsEarlierWork:
    async def test_uniqueness_failure_keeps_pending_user(self, test_db, seeded_db, count_rows):
        user = await accounts.create_user(test_db, "newbie", "newbie@farm.com", "hash")
        user_id = user.id

        with pytest.raises(UniquenessViolation):
            await catalog.create_category(test_db, "Maize")

        await test_db.commit()
        assert await count_rows(User, User.id == user_id) == 1

    async def test_restricted_delete_keeps_pending_user(self, test_db, seeded_db, count_rows):
        user = await accounts.create_user(test_db, "newbie", "newbie@farm.com", "hash")
        user_id = user.id

        with pytest.raises(RestrictedDeleteError):
            await catalog.delete_product(test_db, seeded_db["white_maize_id"])

        await test_db.commit()
        assert await count_rows(User, User.id == user_id) == 1

    async def test_invariant_failure_keeps_earlier_command(self, test_db, seeded_db, count_rows):
        await catalog.create_category(test_db, "Sorghum")

        with pytest.raises(OfferTargetMissingError):
            await offers.update_offer(test_db, seeded_db["offer_id"], product_id=None)

        await test_db.commit()
        assert await count_rows(Category, Category.name == "Sorghum") == 1
        stored = await test_db.scalar(
            select(CoopProductOffer.product_id).where(CoopProductOffer.id == seeded_db["offer_id"])
        )
        assert stored == seeded_db["white_maize_id"]
