from __future__ import annotations

from dataclasses import dataclass
from typing import Any

INSUFFICIENT_STOCK = "insufficient_stock"
DUPLICATE_PENDING = "duplicate_pending"
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
ALREADY_TERMINAL = "already_terminal"
ITEM_NOT_FOUND = "item_not_found"

BUSINESS_ERRORS = frozenset(
    {
        INSUFFICIENT_STOCK,
        DUPLICATE_PENDING,
        NOT_FOUND,
        FORBIDDEN,
        ALREADY_TERMINAL,
        ITEM_NOT_FOUND,
    }
)


@dataclass(frozen=True)
class ServiceResult:
    """Outcome of a ledger or reservation operation.

    Expected business outcomes travel as ``error`` codes; infrastructure
    failures are raised as ``StoreError`` instead.
    """

    ok: bool
    error: str | None = None
    data: Any = None

    @classmethod
    def success(cls, data: Any = None) -> "ServiceResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ServiceResult":
        if error not in BUSINESS_ERRORS:
            raise ValueError(f"unknown business error: {error}")
        return cls(ok=False, error=error)
