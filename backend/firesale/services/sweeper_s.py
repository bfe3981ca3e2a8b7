from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event, Thread

from sqlalchemy.orm import sessionmaker

from firesale.db.errors import StoreError
from firesale.db.transactions import run_in_transaction
from firesale.services.notifications_s import ReservationEvents
from firesale.services.reservations_s import expire_pending_reservations

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ReservationSweeper:
    """Background thread that expires lapsed reservations on a fixed interval."""

    def __init__(
        self,
        interval_seconds: float,
        *,
        session_factory: sessionmaker | None = None,
        events: ReservationEvents | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")
        self.interval_seconds = interval_seconds
        self._session_factory = session_factory
        self._events = events
        self._stop = Event()
        self._thread: Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now: datetime | None = None) -> int:
        sweep_at = now or _utc_now()
        return run_in_transaction(
            lambda db: expire_pending_reservations(
                now=sweep_at,
                db=db,
                events=self._events,
            ),
            session_factory=self._session_factory,
        )

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except StoreError as exc:
                logger.error("reservation sweep failed, retrying next tick: %s", exc)
            except Exception:
                logger.exception("reservation sweep crashed, retrying next tick")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(
            target=self._loop,
            name="reservation-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("reservation sweeper started: interval=%ss", self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("reservation sweeper stopped")
