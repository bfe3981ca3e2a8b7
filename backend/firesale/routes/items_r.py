from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from firesale.dependencies.auth_d import get_current_store
from firesale.dependencies.db_d import get_db, get_db_transactional
from firesale.errors import raise_http_error_from_exception
from firesale.schemas import CreateItemRequest
from firesale.services.items_s import (
    create_item as create_item_s,
    get_item,
    list_store_items,
    search_items,
)

router = APIRouter()


@router.post("/items", status_code=status.HTTP_201_CREATED)
def create_item(
    payload: CreateItemRequest,
    store: dict = Depends(get_current_store),
    db: Session = Depends(get_db_transactional),
):
    data = payload.model_dump()
    if not data.get("store_name"):
        data["store_name"] = store["store_name"]
    try:
        item = create_item_s(payload=data, store_id=store["store_id"], db=db)
    except Exception as exc:
        raise_http_error_from_exception(exc, db=db)
    return {"data": item}


@router.get("/items/search")
def search(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    price_range: Optional[Literal["under_5", "5_to_20", "over_20"]] = Query(None),
    distance_range: Optional[Literal["under_1", "1_to_5", "over_5"]] = Query(None),
    time_left_range: Optional[Literal["under_1_day", "1_to_3_days", "over_3_days"]] = Query(None),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lon: Optional[float] = Query(None, ge=-180, le=180),
    sort_by: Literal[
        "default", "price_asc", "price_desc", "distance", "time_left", "discount"
    ] = Query("default"),
    db: Session = Depends(get_db),
):
    origin = (lat, lon) if lat is not None and lon is not None else None
    try:
        items = search_items(
            db=db,
            text=q,
            category=category,
            price_range=price_range,
            distance_range=distance_range,
            origin=origin,
            time_left_range=time_left_range,
            sort_by=sort_by,
        )
    except Exception as exc:
        raise_http_error_from_exception(exc, db=db)

    return {
        "data": items,
        "meta": {
            "filters": {
                "q": q,
                "category": category,
                "price_range": price_range,
                "distance_range": distance_range,
                "time_left_range": time_left_range,
                "sort_by": sort_by,
            }
        },
    }


@router.get("/items/{item_id}")
def get_item_detail(
    item_id: int,
    db: Session = Depends(get_db),
):
    item = get_item(item_id, db)

    if item is None:
        raise HTTPException(
            status_code=404,
            detail="Item not found",
        )

    return {"data": item}


@router.get("/stores/{store_id}/items")
def get_store_items(
    store_id: str,
    sort_by: Literal["default", "price_asc", "price_desc", "time_left"] = Query("default"),
    db: Session = Depends(get_db),
):
    return {"data": list_store_items(store_id, db=db, sort_by=sort_by)}
