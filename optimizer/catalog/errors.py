"""
Errors raised by catalog adapters
"""
from typing import List, Optional


class CatalogError(Exception):
    """Any failed catalog call. Transient unless a subclass says otherwise."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class CatalogAuthError(CatalogError):
    """401/403 from the catalog. Never retried; fatal to the running job."""


class CatalogRateLimitError(CatalogError):
    """429 from the catalog."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status=429)
        self.retry_after = retry_after


class CatalogNotFoundError(CatalogError):
    def __init__(self, message: str):
        super().__init__(message, status=404)


class CatalogUserError(CatalogError):
    """The catalog accepted the request but rejected the values."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "Mutation rejected")
        self.errors = errors
