"""
CoopMarket Error Taxonomy

Every rejected write surfaces as one of these. Nothing here retries;
the caller decides whether to resubmit with corrected input.

  MarketplaceError
    UniquenessViolation             duplicate natural key
    ReferentialIntegrityViolation   missing parent row
      RestrictedDeleteError         delete blocked by a RESTRICT reference
    InvariantViolation              domain rule broken
      OfferTargetMissingError       offer with neither product nor category
      DerivedColumnWriteError       direct write to a generated column
      InvalidPriceSourceError       price source does not resolve
      EnumDomainError               value outside a stored enum
    RecordNotFoundError             command target does not exist
"""


class MarketplaceError(Exception):
    """Base class for all data-model write failures."""

    def __init__(self, message: str, *, table: str | None = None, constraint: str | None = None):
        super().__init__(message)
        self.table = table
        self.constraint = constraint


class UniquenessViolation(MarketplaceError):
    """A unique key (username, email, order_number, ...) already exists."""


class ReferentialIntegrityViolation(MarketplaceError):
    """A foreign key points at a row that does not exist."""


class RestrictedDeleteError(ReferentialIntegrityViolation):
    """The row is still referenced through an ON DELETE RESTRICT key."""


class InvariantViolation(MarketplaceError, ValueError):
    """A row-level domain rule would be broken by the write."""


class OfferTargetMissingError(InvariantViolation):
    def __init__(self, message: str = "Either product_id or category_id must be provided", **kwargs):
        kwargs.setdefault("table", "coop_product_offers")
        kwargs.setdefault("constraint", "ck_offer_has_target")
        super().__init__(message, **kwargs)


class DerivedColumnWriteError(InvariantViolation):
    pass


class InvalidPriceSourceError(InvariantViolation):
    pass


class EnumDomainError(InvariantViolation):
    pass


class RecordNotFoundError(MarketplaceError, LookupError):
    pass
