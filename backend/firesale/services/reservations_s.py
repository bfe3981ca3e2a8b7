from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from firesale.db.models import Item, Purchase, Reservation
from firesale.services.inventory_ledger_s import increment, try_decrement
from firesale.services.notifications_s import (
    PURCHASE_CREATED,
    RESERVATION_CANCELLED,
    RESERVATION_CREATED,
    RESERVATION_EXPIRED,
    RESERVATION_FULFILLED,
    ReservationEvents,
    publish_after_commit,
)
from firesale.services.results import (
    ALREADY_TERMINAL,
    DUPLICATE_PENDING,
    FORBIDDEN,
    ITEM_NOT_FOUND,
    NOT_FOUND,
    ServiceResult,
)

logger = logging.getLogger(__name__)

RESERVATION_TTL_HOURS = 24
PICKUP_WINDOW_DAYS = 7
STATUS_PENDING = "pending"
STATUS_FULFILLED = "fulfilled"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = frozenset(
    {STATUS_FULFILLED, STATUS_EXPIRED, STATUS_CANCELLED}
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _reservation_to_dict(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "item_id": reservation.item_id,
        "user_id": reservation.user_id,
        "store_id": reservation.store_id,
        "quantity": int(reservation.quantity),
        "status": reservation.status,
        "created_at": reservation.created_at,
        "expires_at": reservation.expires_at,
        "closed_at": reservation.closed_at,
        "reason": reservation.reason,
    }


def _purchase_to_dict(purchase: Purchase) -> dict:
    return {
        "id": purchase.id,
        "item_id": purchase.item_id,
        "reservation_id": purchase.reservation_id,
        "user_id": purchase.user_id,
        "store_id": purchase.store_id,
        "item_name": purchase.item_name,
        "category": purchase.category,
        "unit_price": purchase.unit_price,
        "quantity": int(purchase.quantity),
        "created_at": purchase.created_at,
        "pickup_by": purchase.pickup_by,
    }


def _validate_quantity(quantity: int) -> int:
    value = int(quantity)
    if value <= 0:
        raise ValueError("quantity must be greater than 0")
    return value


def _get_pending_for_pair(item_id: int, user_id: str, db: Session) -> Reservation | None:
    return (
        db.query(Reservation)
        .filter(
            Reservation.item_id == item_id,
            Reservation.user_id == user_id,
            Reservation.status == STATUS_PENDING,
        )
        .with_for_update()
        .first()
    )


def _transition_from_pending(
    reservation_id: int,
    status: str,
    *,
    reason: str,
    now: datetime,
    db: Session,
) -> bool:
    updated = (
        db.query(Reservation)
        .filter(
            Reservation.id == reservation_id,
            Reservation.status == STATUS_PENDING,
        )
        .update(
            {
                Reservation.status: status,
                Reservation.closed_at: now,
                Reservation.reason: reason,
                Reservation.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    return int(updated or 0) == 1


def _release_reservation(
    *,
    reservation_id: int,
    item_id: int,
    user_id: str,
    quantity: int,
    status: str,
    reason: str,
    now: datetime,
    db: Session,
    events: ReservationEvents | None,
) -> bool:
    """Close a pending reservation and give its stock back to the ledger.

    Returns False when another writer already closed it, in which case the
    stock was returned by that writer.
    """
    if not _transition_from_pending(
        reservation_id,
        status,
        reason=reason,
        now=now,
        db=db,
    ):
        return False

    restock = increment(item_id, int(quantity), db)
    if not restock.ok:
        logger.warning(
            "reservation %s closed as %s but item %s no longer exists",
            reservation_id,
            status,
            item_id,
        )

    event_name = RESERVATION_EXPIRED if status == STATUS_EXPIRED else RESERVATION_CANCELLED
    publish_after_commit(
        db,
        events,
        user_id,
        event_name,
        {
            "reservation_id": reservation_id,
            "item_id": item_id,
            "quantity": int(quantity),
            "status": status,
        },
    )
    return True


def _expire_lapsed(
    reservation: Reservation,
    *,
    now: datetime,
    db: Session,
    events: ReservationEvents | None,
) -> bool:
    released = _release_reservation(
        reservation_id=int(reservation.id),
        item_id=int(reservation.item_id),
        user_id=reservation.user_id,
        quantity=int(reservation.quantity),
        status=STATUS_EXPIRED,
        reason="reservation_expired",
        now=now,
        db=db,
        events=events,
    )
    if released:
        logger.info("reservation %s expired on access", reservation.id)
    return released


def _create_purchase(
    item: Item,
    *,
    user_id: str,
    quantity: int,
    reservation_id: int | None,
    now: datetime,
    db: Session,
) -> Purchase:
    purchase = Purchase(
        item_id=item.id,
        reservation_id=reservation_id,
        user_id=user_id,
        store_id=item.store_id,
        item_name=item.name,
        category=item.category,
        unit_price=item.discount_price,
        quantity=quantity,
        created_at=now,
        pickup_by=now + timedelta(days=PICKUP_WINDOW_DAYS),
    )
    db.add(purchase)
    return purchase


def reserve_item(
    item_id: int,
    user_id: str,
    quantity: int = 1,
    *,
    db: Session,
    now: datetime | None = None,
    events: ReservationEvents | None = None,
) -> ServiceResult:
    now = now or _utc_now()
    quantity = _validate_quantity(quantity)

    item = db.query(Item).filter(Item.id == item_id).first()
    if item is None:
        return ServiceResult.failure(ITEM_NOT_FOUND)

    existing = _get_pending_for_pair(item_id=item_id, user_id=user_id, db=db)
    if existing is not None:
        if existing.expires_at > now:
            return ServiceResult.failure(DUPLICATE_PENDING)
        _expire_lapsed(existing, now=now, db=db, events=events)

    decrement = try_decrement(item_id, quantity, db)
    if not decrement.ok:
        logger.info(
            "reservation rejected: item_id=%s user_id=%s reason=%s",
            item_id,
            user_id,
            decrement.error,
        )
        return decrement

    reservation = Reservation(
        item_id=item.id,
        user_id=user_id,
        store_id=item.store_id,
        quantity=quantity,
        status=STATUS_PENDING,
        expires_at=now + timedelta(hours=RESERVATION_TTL_HOURS),
        created_at=now,
        updated_at=now,
    )
    db.add(reservation)
    try:
        db.flush()
    except IntegrityError:
        # A concurrent request inserted the pending row first; drop our decrement with it.
        db.rollback()
        return ServiceResult.failure(DUPLICATE_PENDING)

    payload = _reservation_to_dict(reservation)
    publish_after_commit(db, events, user_id, RESERVATION_CREATED, payload)
    logger.info(
        "reservation created: id=%s item_id=%s user_id=%s quantity=%s remaining=%s",
        reservation.id,
        item_id,
        user_id,
        quantity,
        decrement.data,
    )
    return ServiceResult.success(payload)


def confirm_purchase(
    reservation_id: int,
    *,
    db: Session,
    actor_id: str | None = None,
    now: datetime | None = None,
    events: ReservationEvents | None = None,
) -> ServiceResult:
    now = now or _utc_now()
    reservation = (
        db.query(Reservation)
        .filter(Reservation.id == reservation_id)
        .with_for_update()
        .first()
    )
    if reservation is None:
        return ServiceResult.failure(NOT_FOUND)
    if actor_id is not None and reservation.user_id != actor_id:
        return ServiceResult.failure(FORBIDDEN)
    if reservation.status in TERMINAL_STATUSES:
        return ServiceResult.failure(ALREADY_TERMINAL)
    if reservation.expires_at <= now:
        _expire_lapsed(reservation, now=now, db=db, events=events)
        return ServiceResult.failure(ALREADY_TERMINAL)

    if not _transition_from_pending(
        reservation.id,
        STATUS_FULFILLED,
        reason="purchase_confirmed",
        now=now,
        db=db,
    ):
        return ServiceResult.failure(ALREADY_TERMINAL)

    purchase = _create_purchase(
        reservation.item,
        user_id=reservation.user_id,
        quantity=int(reservation.quantity),
        reservation_id=int(reservation.id),
        now=now,
        db=db,
    )
    db.flush()
    db.refresh(reservation)

    payload = _purchase_to_dict(purchase)
    publish_after_commit(
        db,
        events,
        reservation.user_id,
        RESERVATION_FULFILLED,
        _reservation_to_dict(reservation),
    )
    publish_after_commit(db, events, reservation.user_id, PURCHASE_CREATED, payload)
    logger.info(
        "reservation %s fulfilled by purchase %s",
        reservation.id,
        purchase.id,
    )
    return ServiceResult.success(payload)


def buy_now(
    item_id: int,
    user_id: str,
    quantity: int = 1,
    *,
    db: Session,
    now: datetime | None = None,
    events: ReservationEvents | None = None,
) -> ServiceResult:
    now = now or _utc_now()
    quantity = _validate_quantity(quantity)

    item = db.query(Item).filter(Item.id == item_id).first()
    if item is None:
        return ServiceResult.failure(ITEM_NOT_FOUND)

    existing = _get_pending_for_pair(item_id=item_id, user_id=user_id, db=db)
    if existing is not None:
        if existing.expires_at > now:
            return ServiceResult.failure(DUPLICATE_PENDING)
        _expire_lapsed(existing, now=now, db=db, events=events)

    decrement = try_decrement(item_id, quantity, db)
    if not decrement.ok:
        logger.info(
            "purchase rejected: item_id=%s user_id=%s reason=%s",
            item_id,
            user_id,
            decrement.error,
        )
        return decrement

    reservation = Reservation(
        item_id=item.id,
        user_id=user_id,
        store_id=item.store_id,
        quantity=quantity,
        status=STATUS_FULFILLED,
        expires_at=now + timedelta(hours=RESERVATION_TTL_HOURS),
        closed_at=now,
        reason="bought_now",
        created_at=now,
        updated_at=now,
    )
    db.add(reservation)
    db.flush()

    purchase = _create_purchase(
        item,
        user_id=user_id,
        quantity=quantity,
        reservation_id=int(reservation.id),
        now=now,
        db=db,
    )
    db.flush()

    payload = _purchase_to_dict(purchase)
    publish_after_commit(db, events, user_id, PURCHASE_CREATED, payload)
    logger.info(
        "purchase %s created without reservation: item_id=%s user_id=%s quantity=%s",
        purchase.id,
        item_id,
        user_id,
        quantity,
    )
    return ServiceResult.success(payload)


def cancel_reservation(
    reservation_id: int,
    actor_id: str,
    *,
    db: Session,
    now: datetime | None = None,
    events: ReservationEvents | None = None,
) -> ServiceResult:
    now = now or _utc_now()
    reservation = (
        db.query(Reservation)
        .filter(Reservation.id == reservation_id)
        .with_for_update()
        .first()
    )
    if reservation is None:
        return ServiceResult.failure(NOT_FOUND)
    if reservation.user_id != actor_id:
        return ServiceResult.failure(FORBIDDEN)
    if reservation.status in TERMINAL_STATUSES:
        return ServiceResult.failure(ALREADY_TERMINAL)
    if reservation.expires_at <= now:
        _expire_lapsed(reservation, now=now, db=db, events=events)
        return ServiceResult.failure(ALREADY_TERMINAL)

    released = _release_reservation(
        reservation_id=int(reservation.id),
        item_id=int(reservation.item_id),
        user_id=reservation.user_id,
        quantity=int(reservation.quantity),
        status=STATUS_CANCELLED,
        reason="cancelled_by_buyer",
        now=now,
        db=db,
        events=events,
    )
    if not released:
        return ServiceResult.failure(ALREADY_TERMINAL)

    db.flush()
    db.refresh(reservation)
    logger.info("reservation %s cancelled by %s", reservation.id, actor_id)
    return ServiceResult.success(_reservation_to_dict(reservation))


def expire_pending_reservations(
    now: datetime,
    db: Session,
    events: ReservationEvents | None = None,
) -> int:
    """Expire every pending reservation whose hold ended at or before ``now``.

    Safe to repeat and to run alongside another sweep: a reservation that is
    no longer pending is skipped, so its stock is returned exactly once.
    """
    lapsed = (
        db.query(
            Reservation.id,
            Reservation.item_id,
            Reservation.user_id,
            Reservation.quantity,
        )
        .filter(
            Reservation.status == STATUS_PENDING,
            Reservation.expires_at <= now,
        )
        .order_by(Reservation.expires_at.asc(), Reservation.id.asc())
        .all()
    )
    if not lapsed:
        return 0

    expired_count = 0
    for reservation_id, item_id, user_id, quantity in lapsed:
        if _release_reservation(
            reservation_id=int(reservation_id),
            item_id=int(item_id),
            user_id=user_id,
            quantity=int(quantity),
            status=STATUS_EXPIRED,
            reason="reservation_expired",
            now=now,
            db=db,
            events=events,
        ):
            expired_count += 1

    db.flush()
    logger.info("expired %s pending reservations", expired_count)
    return int(expired_count)


def get_reservation(reservation_id: int, db: Session) -> dict | None:
    reservation = db.query(Reservation).filter(Reservation.id == reservation_id).first()
    if reservation is None:
        return None
    return _reservation_to_dict(reservation)


def list_reservations_for_user(
    user_id: str,
    db: Session,
    *,
    status: str | None = None,
) -> list[dict]:
    query = db.query(Reservation).filter(Reservation.user_id == user_id)
    if status is not None:
        query = query.filter(Reservation.status == status)
    rows = query.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()
    return [_reservation_to_dict(row) for row in rows]


def list_reservations_for_store(
    store_id: str,
    db: Session,
    *,
    status: str | None = None,
) -> list[dict]:
    query = db.query(Reservation).filter(Reservation.store_id == store_id)
    if status is not None:
        query = query.filter(Reservation.status == status)
    rows = query.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()
    return [_reservation_to_dict(row) for row in rows]
