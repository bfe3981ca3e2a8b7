from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from threading import Lock

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

RESERVATION_CREATED = "reservation.created"
RESERVATION_FULFILLED = "reservation.fulfilled"
RESERVATION_CANCELLED = "reservation.cancelled"
RESERVATION_EXPIRED = "reservation.expired"
PURCHASE_CREATED = "purchase.created"
PENDING_EVENTS_KEY = "pending_reservation_events"

Subscriber = Callable[[str, dict], None]


class ReservationEvents:
    """Per-user subscriptions to reservation and purchase state changes.

    One instance lives on the application state and is handed to whatever
    needs it; there is no module-level registry.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, user_id: str, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers[user_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(user_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(user_id, None)

        return unsubscribe

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, []))

    def publish(self, user_id: str, event_name: str, payload: dict) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(user_id, []))
        for callback in callbacks:
            try:
                callback(event_name, payload)
            except Exception:
                logger.exception(
                    "reservation event subscriber failed: event=%s user_id=%s",
                    event_name,
                    user_id,
                )


def _publish_pending(session: Session) -> None:
    for events, user_id, event_name, payload in session.info.pop(PENDING_EVENTS_KEY, []):
        events.publish(user_id, event_name, payload)


def _discard_pending(session: Session) -> None:
    session.info.pop(PENDING_EVENTS_KEY, None)


def publish_after_commit(
    db: Session,
    events: ReservationEvents | None,
    user_id: str,
    event_name: str,
    payload: dict,
) -> None:
    """Queue an event on the session; it goes out only if the session commits."""
    if events is None:
        return

    db.info.setdefault(PENDING_EVENTS_KEY, []).append(
        (events, user_id, event_name, payload)
    )
    if not event.contains(db, "after_commit", _publish_pending):
        event.listen(db, "after_commit", _publish_pending)
        event.listen(db, "after_rollback", _discard_pending)
