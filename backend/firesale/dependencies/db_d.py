from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from firesale.db import session as db_session
from firesale.services.notifications_s import ReservationEvents


def get_session_factory() -> sessionmaker:
    return db_session.SessionLocal


def get_db(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_db_transactional(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_reservation_events(request: Request) -> ReservationEvents:
    return request.app.state.reservation_events
