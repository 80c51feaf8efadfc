"""
Write-failure translation.

Maps driver IntegrityErrors onto core.errors and wraps each command in a
SAVEPOINT that either lands completely or leaves nothing behind.
"""

import re
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    EnumDomainError,
    MarketplaceError,
    OfferTargetMissingError,
    RecordNotFoundError,
    ReferentialIntegrityViolation,
    RestrictedDeleteError,
    UniquenessViolation,
)

logger = structlog.get_logger()

# PostgreSQL SQLSTATE classes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
NOT_NULL_VIOLATION = "23502"
RESTRICT_VIOLATION = "23001"

_OFFER_TARGET_CHECK = "ck_offer_has_target"
_CONSTRAINT_NAME = re.compile(r'constraint "?(\w+)"?', re.IGNORECASE)
_SQLITE_CHECK = re.compile(r"CHECK constraint failed: (\w+)")
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w.]+)")


def _sqlstate(orig) -> str | None:
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def _constraint_name(exc: IntegrityError) -> str | None:
    orig = exc.orig
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None) or getattr(orig, "constraint_name", None)
    if name:
        return name
    match = _CONSTRAINT_NAME.search(str(orig))
    return match.group(1) if match else None


def _check_error(constraint: str | None, message: str) -> MarketplaceError:
    if constraint == _OFFER_TARGET_CHECK:
        return OfferTargetMissingError()
    return EnumDomainError(message, constraint=constraint)


def translate_integrity_error(exc: IntegrityError, *, deleting: bool = False) -> MarketplaceError:
    """
    Classify a driver IntegrityError.

    `deleting` marks a failure raised by a DELETE, where a foreign key
    violation means a RESTRICT reference blocked the delete.
    """
    message = str(exc.orig)
    code = _sqlstate(exc.orig)

    if code is not None:
        constraint = _constraint_name(exc)
        if code == UNIQUE_VIOLATION:
            return UniquenessViolation(message, constraint=constraint)
        if code == RESTRICT_VIOLATION or (code == FOREIGN_KEY_VIOLATION and deleting):
            return RestrictedDeleteError(message, constraint=constraint)
        if code == FOREIGN_KEY_VIOLATION:
            return ReferentialIntegrityViolation(message, constraint=constraint)
        if code == CHECK_VIOLATION:
            return _check_error(constraint, message)
        return MarketplaceError(message, constraint=constraint)

    # SQLite reports everything through the message text.
    if match := _SQLITE_UNIQUE.search(message):
        table = match.group(1).split(".")[0]
        return UniquenessViolation(message, table=table, constraint=match.group(1))
    if match := _SQLITE_CHECK.search(message):
        return _check_error(match.group(1), message)
    if "FOREIGN KEY constraint failed" in message:
        if deleting:
            return RestrictedDeleteError(message)
        return ReferentialIntegrityViolation(message)
    return MarketplaceError(message)


@asynccontextmanager
async def atomic_write(db: AsyncSession, action: str, *, deleting: bool = False, **context):
    """
    Run one command inside a SAVEPOINT.

    A failure rolls back only this command; earlier work in the caller's
    transaction is kept, and committing or discarding it stays with the
    caller. Errors surface as MarketplaceError. Nothing is retried.
    """
    try:
        async with db.begin_nested():
            yield
    except IntegrityError as exc:
        error = translate_integrity_error(exc, deleting=deleting)
        logger.warning(f"{action}.rejected", error=type(error).__name__, detail=str(error), **context)
        raise error from exc
    except MarketplaceError as exc:
        logger.warning(f"{action}.rejected", error=type(exc).__name__, detail=str(exc), **context)
        raise


async def get_or_raise(db: AsyncSession, model, pk):
    obj = await db.get(model, pk)
    if obj is None:
        raise RecordNotFoundError(f"{model.__tablename__} {pk} not found", table=model.__tablename__)
    return obj
