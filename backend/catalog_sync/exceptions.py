"""
Custom exception hierarchy for the catalog sync service.

Exceptions are categorized as:
- RateLimitError: transient throttling, retried by the gateway
- SupplierError: any other non-success supplier response
- MissingVariantError: per-entry business error, recorded and skipped
"""

from typing import Any, Optional


class CatalogSyncException(Exception):
    """Base exception for the catalog sync service."""
    pass


class SupplierError(CatalogSyncException):
    """
    Error returned by the supplier API.

    Carries the HTTP status and the raw (parsed if possible) body so callers
    can record the failure without re-reading the response.
    """
    def __init__(self, status: Optional[int], body: Any = None, message: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message or f"Supplier API error (status={status}): {body}")


class RateLimitError(SupplierError):
    """
    Supplier rate limit exceeded.

    Retried with exponential backoff by the gateway; only surfaces once the
    attempt ceiling is reached.
    """
    pass


class SupplierAuthError(SupplierError):
    """Authentication against the supplier failed. Needs a configuration fix."""
    pass


class MissingVariantError(CatalogSyncException):
    """Catalog entry has no variant id and none could be resolved."""
    pass


class SyncAlreadyRunningError(CatalogSyncException):
    """A sync of the same job type is already in progress; the trigger is dropped."""
    pass
