from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from firesale.db.errors import StoreError
from firesale.services.results import (
    ALREADY_TERMINAL,
    DUPLICATE_PENDING,
    FORBIDDEN,
    INSUFFICIENT_STOCK,
    ITEM_NOT_FOUND,
    NOT_FOUND,
    ServiceResult,
)

RESULT_STATUS_CODES = {
    NOT_FOUND: 404,
    ITEM_NOT_FOUND: 404,
    FORBIDDEN: 403,
    INSUFFICIENT_STOCK: 409,
    DUPLICATE_PENDING: 409,
    ALREADY_TERMINAL: 409,
}


def raise_http_error_from_exception(exc: Exception, db: Session | None = None) -> None:
    if db is not None and isinstance(exc, (IntegrityError, SQLAlchemyError)):
        db.rollback()

    if isinstance(exc, StoreError):
        raise HTTPException(status_code=503, detail="store unavailable") from exc
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, IntegrityError):
        raise HTTPException(
            status_code=409,
            detail="database constraint violation",
        ) from exc
    if isinstance(exc, SQLAlchemyError):
        raise HTTPException(
            status_code=500,
            detail="database error",
        ) from exc

    raise exc


def raise_http_error_from_result(result: ServiceResult) -> None:
    if result.ok:
        return
    raise HTTPException(
        status_code=RESULT_STATUS_CODES.get(result.error, 400),
        detail=result.error,
    )
