"""
Typed exception hierarchy for the offer kernel.

Every error has a typed class (catch by type, not message), a ``code`` class
attribute (machine-readable, API-safe) and structured attributes carrying the
context of the failure.

    OfferKernelError (base)
    |
    +-- CatalogError
    |   +-- DuplicateCatalogIdError
    |   +-- CatalogIntegrityError
    |   +-- CatalogImportError
    |
    +-- OfferIncompleteError
    |
    +-- DraftStoreError
    |   +-- DraftSaveError
    |   +-- DraftLoadError
    |
    +-- QuoteError
        +-- QuoteNotFoundError
        +-- InvalidQuoteTransitionError

Category   | Code                      | When Raised
-----------|---------------------------|------------------------------------------
Catalog    | DUPLICATE_CATALOG_ID      | Package or option id defined twice
           | CATALOG_INTEGRITY         | Preset/eligibility references unknown id
           | CATALOG_IMPORT_FAILED     | JSON catalog missing sections or malformed
Offer      | OFFER_INCOMPLETE          | Export / final save without a base package
Draft      | DRAFT_SAVE_FAILED         | Draft store could not persist a snapshot
           | DRAFT_LOAD_FAILED         | Draft store could not read a snapshot
Quote      | QUOTE_NOT_FOUND           | No stored quote for the key
           | INVALID_QUOTE_TRANSITION  | Status change not allowed

Mutators never raise: invalid input to a mutator is refused or clamped and
the configuration is returned unchanged. The draft codec never raises for
snapshot content: stale or malformed fields are dropped and reported.
"""


class OfferKernelError(Exception):
    """
    Base exception for all offer kernel errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "OFFER_KERNEL_ERROR"


# Catalog exceptions


class CatalogError(OfferKernelError):
    """Base exception for catalog definition errors."""

    code: str = "CATALOG_ERROR"


class DuplicateCatalogIdError(CatalogError):
    """A package or option id appears more than once in the catalog."""

    code: str = "DUPLICATE_CATALOG_ID"

    def __init__(self, kind: str, entry_id: str):
        self.kind = kind
        self.entry_id = entry_id
        super().__init__(f"Duplicate {kind} id in catalog: {entry_id}")


class CatalogIntegrityError(CatalogError):
    """A catalog entry references an id that does not exist."""

    code: str = "CATALOG_INTEGRITY"

    def __init__(self, source_id: str, missing_id: str, detail: str = ""):
        self.source_id = source_id
        self.missing_id = missing_id
        msg = f"{source_id} references unknown id {missing_id}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class CatalogImportError(CatalogError):
    """A catalog document could not be imported."""

    code: str = "CATALOG_IMPORT_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to import catalog: {reason}")


# Offer exceptions


class OfferIncompleteError(OfferKernelError):
    """The offer has no base package and cannot be finalized or exported."""

    code: str = "OFFER_INCOMPLETE"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Select a base package before you {action} the offer.")


# Draft store exceptions


class DraftStoreError(OfferKernelError):
    """Base exception for draft persistence failures (always recoverable)."""

    code: str = "DRAFT_STORE_ERROR"


class DraftSaveError(DraftStoreError):
    """A draft snapshot could not be saved."""

    code: str = "DRAFT_SAVE_FAILED"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to save draft {key}: {reason}")


class DraftLoadError(DraftStoreError):
    """A draft snapshot could not be loaded."""

    code: str = "DRAFT_LOAD_FAILED"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to load draft {key}: {reason}")


# Quote lifecycle exceptions


class QuoteError(OfferKernelError):
    """Base exception for stored quote lifecycle errors."""

    code: str = "QUOTE_ERROR"


class QuoteNotFoundError(QuoteError):
    """No stored quote exists for the key."""

    code: str = "QUOTE_NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Quote not found: {key}")


class InvalidQuoteTransitionError(QuoteError):
    """The requested quote status change is not allowed."""

    code: str = "INVALID_QUOTE_TRANSITION"

    def __init__(self, key: str, from_status: str, to_status: str):
        self.key = key
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Quote {key} cannot move from {from_status} to {to_status}"
        )
