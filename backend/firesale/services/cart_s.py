from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session, joinedload

from firesale.db.models import Reservation
from firesale.services.reservations_s import STATUS_PENDING


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _cart_entry_to_dict(reservation: Reservation, *, now: datetime) -> dict:
    item = reservation.item
    return {
        "reservation_id": reservation.id,
        "item_id": reservation.item_id,
        "store_id": reservation.store_id,
        "item_name": item.name if item is not None else None,
        "store_name": item.store_name if item is not None else None,
        "discount_price": item.discount_price if item is not None else None,
        "photo_url": item.photo_url if item is not None else None,
        "quantity": int(reservation.quantity),
        "created_at": reservation.created_at,
        "expires_at": reservation.expires_at,
        "seconds_left": int((reservation.expires_at - now).total_seconds()),
    }


def get_buyer_cart(
    user_id: str,
    *,
    db: Session,
    now: datetime | None = None,
) -> list[dict]:
    """Unexpired pending reservations of a buyer, newest first.

    Nothing is written here; a hold that lapsed but was not swept yet is
    simply left out.
    """
    now = now or _utc_now()
    rows = (
        db.query(Reservation)
        .options(joinedload(Reservation.item))
        .filter(
            Reservation.user_id == user_id,
            Reservation.status == STATUS_PENDING,
            Reservation.expires_at > now,
        )
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .all()
    )
    return [_cart_entry_to_dict(row, now=now) for row in rows]
