# invoicebook/core/errors.py
"""
Error taxonomy for the ledger and its store.

Validation and amount errors are resolved where they happen (form or ledger
call site) and never reach the live queries. Store errors reject the whole
operation; nothing is half-written.
"""


class InvoicebookError(Exception):
    """Base class for every error the application raises on purpose."""


class ValidationError(InvoicebookError):
    """Malformed entity payload, rejected before any store write."""


class InvalidAmount(InvoicebookError):
    """Missing, non-numeric or non-positive payment amount."""


class MissingReference(InvoicebookError):
    """A referenced record (customer, invoice, business profile) is absent."""

    def __init__(self, kind: str, key: str = ""):
        self.kind = kind
        self.key = key
        detail = f"{kind} not found" if not key else f"{kind} {key!r} not found"
        super().__init__(detail)


class StoreError(InvoicebookError):
    """Persistence layer failure. Fatal for the session."""


class StoreUnavailable(StoreError):
    """Store could not be reached, or was used before open() / after close()."""


class SchemaError(StoreError):
    """On-disk data does not match the declared schema version."""


class ShareCancelled(InvoicebookError):
    """The user dismissed the share dialog. Not an error for the user."""
