from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, sessionmaker

from firesale.db.transactions import run_in_transaction
from firesale.dependencies.auth_d import (
    get_current_store,
    get_current_user_id,
    require_admin,
)
from firesale.dependencies.db_d import (
    get_db,
    get_reservation_events,
    get_session_factory,
)
from firesale.errors import raise_http_error_from_exception, raise_http_error_from_result
from firesale.schemas import (
    BuyNowRequest,
    CartEntryResponse,
    ExpireReservationsResponse,
    PurchaseResponse,
    ReservationResponse,
    ReserveItemRequest,
)
from firesale.services.cart_s import get_buyer_cart
from firesale.services.notifications_s import ReservationEvents
from firesale.services.reservations_s import (
    buy_now,
    cancel_reservation,
    confirm_purchase,
    expire_pending_reservations,
    get_reservation,
    list_reservations_for_store,
    list_reservations_for_user,
    reserve_item,
)

router = APIRouter()


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: ReserveItemRequest,
    user_id: str = Depends(get_current_user_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    events: ReservationEvents = Depends(get_reservation_events),
):
    try:
        result = run_in_transaction(
            lambda db: reserve_item(
                payload.item_id,
                user_id,
                payload.quantity,
                db=db,
                events=events,
            ),
            session_factory=session_factory,
        )
    except Exception as exc:
        raise_http_error_from_exception(exc)
    raise_http_error_from_result(result)
    return {"data": ReservationResponse(**result.data)}


@router.get("/reservations")
def get_my_reservations(
    status_filter: str | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    rows = list_reservations_for_user(user_id, db, status=status_filter)
    return {"data": [ReservationResponse(**row) for row in rows]}


@router.get("/reservations/{reservation_id}")
def get_reservation_detail(
    reservation_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    reservation = get_reservation(reservation_id=reservation_id, db=db)
    if reservation is None or user_id not in {
        reservation["user_id"],
        reservation["store_id"],
    }:
        raise HTTPException(status_code=404, detail="reservation not found")
    return {"data": ReservationResponse(**reservation)}


@router.post("/reservations/{reservation_id}/confirm")
def confirm_reservation(
    reservation_id: int,
    user_id: str = Depends(get_current_user_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    events: ReservationEvents = Depends(get_reservation_events),
):
    try:
        result = run_in_transaction(
            lambda db: confirm_purchase(
                reservation_id,
                actor_id=user_id,
                db=db,
                events=events,
            ),
            session_factory=session_factory,
        )
    except Exception as exc:
        raise_http_error_from_exception(exc)
    raise_http_error_from_result(result)
    return {"data": PurchaseResponse(**result.data)}


@router.post("/reservations/{reservation_id}/cancel")
def cancel_reservation_endpoint(
    reservation_id: int,
    user_id: str = Depends(get_current_user_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    events: ReservationEvents = Depends(get_reservation_events),
):
    try:
        result = run_in_transaction(
            lambda db: cancel_reservation(
                reservation_id,
                user_id,
                db=db,
                events=events,
            ),
            session_factory=session_factory,
        )
    except Exception as exc:
        raise_http_error_from_exception(exc)
    raise_http_error_from_result(result)
    return {"data": ReservationResponse(**result.data)}


@router.post("/purchases", status_code=status.HTTP_201_CREATED)
def buy_now_endpoint(
    payload: BuyNowRequest,
    user_id: str = Depends(get_current_user_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    events: ReservationEvents = Depends(get_reservation_events),
):
    try:
        result = run_in_transaction(
            lambda db: buy_now(
                payload.item_id,
                user_id,
                payload.quantity,
                db=db,
                events=events,
            ),
            session_factory=session_factory,
        )
    except Exception as exc:
        raise_http_error_from_exception(exc)
    raise_http_error_from_result(result)
    return {"data": PurchaseResponse(**result.data)}


@router.get("/cart")
def get_cart(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    entries = get_buyer_cart(user_id, db=db)
    return {"data": [CartEntryResponse(**entry) for entry in entries]}


@router.get("/stores/me/reservations")
def get_store_reservations(
    status_filter: str | None = None,
    store: dict = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    rows = list_reservations_for_store(store["store_id"], db, status=status_filter)
    return {"data": [ReservationResponse(**row) for row in rows]}


@router.post("/admin/reservations/expire")
def expire_reservations(
    _: dict = Depends(require_admin),
    session_factory: sessionmaker = Depends(get_session_factory),
    events: ReservationEvents = Depends(get_reservation_events),
):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    try:
        expired_count = run_in_transaction(
            lambda db: expire_pending_reservations(now=now, db=db, events=events),
            session_factory=session_factory,
        )
    except Exception as exc:
        raise_http_error_from_exception(exc)
    return {"data": ExpireReservationsResponse(expired_count=int(expired_count))}
