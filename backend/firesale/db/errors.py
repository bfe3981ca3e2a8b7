from __future__ import annotations


class StoreError(Exception):
    """Base error for failures of the underlying database."""


class TransactionConflictError(StoreError):
    """Transaction lost a lock or serialization race and can be retried."""


class StoreUnavailableError(StoreError):
    """Database is unreachable, rejected the write, or retries ran out."""
