from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from firesale.db.models import Item
from firesale.services.results import (
    INSUFFICIENT_STOCK,
    ITEM_NOT_FOUND,
    ServiceResult,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _validate_amount(amount: int) -> int:
    value = int(amount)
    if value <= 0:
        raise ValueError("amount must be greater than 0")
    return value


def get_quantity(item_id: int, db: Session) -> int | None:
    quantity = (
        db.query(Item.quantity_available)
        .filter(Item.id == item_id)
        .scalar()
    )
    return None if quantity is None else int(quantity)


def try_decrement(item_id: int, amount: int, db: Session) -> ServiceResult:
    """Take ``amount`` units of stock, or nothing at all.

    The check and the write are one conditional UPDATE, so two callers racing
    for the last unit cannot both see enough stock.
    """
    value = _validate_amount(amount)
    updated = (
        db.query(Item)
        .filter(
            Item.id == item_id,
            Item.quantity_available >= value,
        )
        .update(
            {
                Item.quantity_available: Item.quantity_available - value,
                Item.updated_at: _utc_now(),
            },
            synchronize_session=False,
        )
    )
    if int(updated or 0) != 1:
        if get_quantity(item_id, db) is None:
            return ServiceResult.failure(ITEM_NOT_FOUND)
        return ServiceResult.failure(INSUFFICIENT_STOCK)
    return ServiceResult.success(get_quantity(item_id, db))


def increment(item_id: int, amount: int, db: Session) -> ServiceResult:
    value = _validate_amount(amount)
    updated = (
        db.query(Item)
        .filter(Item.id == item_id)
        .update(
            {
                Item.quantity_available: Item.quantity_available + value,
                Item.updated_at: _utc_now(),
            },
            synchronize_session=False,
        )
    )
    if int(updated or 0) != 1:
        return ServiceResult.failure(ITEM_NOT_FOUND)
    return ServiceResult.success(get_quantity(item_id, db))
