from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from firesale.dependencies.auth_d import get_current_store
from firesale.dependencies.db_d import get_db
from firesale.services.analytics_s import period_range, store_analytics

router = APIRouter()


@router.get("/stores/me/analytics")
def get_store_analytics(
    period: Literal["week", "month", "year"] = Query("week"),
    store: dict = Depends(get_current_store),
    db: Session = Depends(get_db),
):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    start, end = period_range(period, now)
    return {"data": store_analytics(store["store_id"], start=start, end=end, db=db)}
