from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Literal

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from firesale.db.models import Item

CATEGORIES = ("FireKitchen", "FireClothing", "FireHouse", "Other")
EARTH_RADIUS_MILES = 3958.8

PriceRange = Literal["under_5", "5_to_20", "over_20"]
DistanceRange = Literal["under_1", "1_to_5", "over_5"]
TimeLeftRange = Literal["under_1_day", "1_to_3_days", "over_3_days"]
StoreSort = Literal["default", "price_asc", "price_desc", "time_left"]
SearchSort = Literal["default", "price_asc", "price_desc", "distance", "time_left", "discount"]

_TIME_UNITS = {
    "minute": timedelta(minutes=1),
    "minutes": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "hours": timedelta(hours=1),
    "day": timedelta(days=1),
    "days": timedelta(days=1),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_time_left(value: str) -> timedelta:
    parts = str(value).strip().lower().split()
    if len(parts) != 2:
        raise ValueError("time_left must look like '<number> <minutes|hours|days>'")
    raw_amount, unit = parts
    try:
        amount = int(raw_amount)
    except ValueError as exc:
        raise ValueError("time_left amount must be an integer") from exc
    if amount <= 0:
        raise ValueError("time_left amount must be greater than 0")
    if unit not in _TIME_UNITS:
        raise ValueError(f"unsupported time_left unit: {unit}")
    return _TIME_UNITS[unit] * amount


def _to_price(value: object, field: str) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"{field} must be a number") from exc
    if not price.is_finite() or price < 0:
        raise ValueError(f"{field} must be 0 or greater")
    return price.quantize(Decimal("0.01"))


def days_left(item: Item, now: datetime) -> float:
    return (item.deal_ends_at - now).total_seconds() / 86400


def discount_percentage(item: Item) -> float:
    original = Decimal(item.original_price)
    if original <= 0:
        return 0.0
    return float((original - Decimal(item.discount_price)) / original * 100)


def distance_miles(
    origin: tuple[float, float],
    latitude: float | None,
    longitude: float | None,
) -> float | None:
    if latitude is None or longitude is None:
        return None
    lat1, lon1 = map(math.radians, origin)
    lat2, lon2 = math.radians(latitude), math.radians(longitude)
    d_lat = lat2 - lat1
    d_lon = lon2 - lon1
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


def _item_to_dict(
    item: Item,
    *,
    now: datetime,
    origin: tuple[float, float] | None = None,
) -> dict:
    data = {
        "id": item.id,
        "name": item.name,
        "original_price": item.original_price,
        "discount_price": item.discount_price,
        "discount_percentage": round(discount_percentage(item), 2),
        "quantity_available": int(item.quantity_available),
        "store_id": item.store_id,
        "store_name": item.store_name,
        "category": item.category,
        "photo_url": item.photo_url,
        "latitude": item.latitude,
        "longitude": item.longitude,
        "time_left": item.time_left,
        "deal_ends_at": item.deal_ends_at,
        "active": item.deal_ends_at > now,
        "created_at": item.created_at,
    }
    if origin is not None:
        data["distance_miles"] = distance_miles(origin, item.latitude, item.longitude)
    return data


def create_item(
    payload: dict,
    store_id: str,
    *,
    db: Session,
    now: datetime | None = None,
) -> dict:
    now = now or _utc_now()
    name = str(payload.get("name", "")).strip()
    if not name:
        raise ValueError("name is required")

    original_price = _to_price(payload.get("original_price"), "original_price")
    discount_price = _to_price(payload.get("discount_price"), "discount_price")
    if discount_price > original_price:
        raise ValueError("discount_price cannot exceed original_price")

    quantity = int(payload.get("quantity", 0))
    if quantity < 0:
        raise ValueError("quantity must be 0 or greater")

    category = payload.get("category") or "Other"
    if category not in CATEGORIES:
        raise ValueError(f"unknown category: {category}")

    time_left = str(payload.get("time_left", "")).strip()
    deal_ends_at = now + parse_time_left(time_left)

    item = Item(
        name=name,
        original_price=original_price,
        discount_price=discount_price,
        quantity_available=quantity,
        store_id=store_id,
        store_name=str(payload.get("store_name") or "").strip(),
        category=category,
        photo_url=payload.get("photo_url"),
        latitude=payload.get("latitude"),
        longitude=payload.get("longitude"),
        time_left=time_left,
        deal_ends_at=deal_ends_at,
        created_at=now,
        updated_at=now,
    )
    db.add(item)
    db.flush()
    db.refresh(item)
    return _item_to_dict(item, now=now)


def get_item(item_id: int, db: Session, *, now: datetime | None = None) -> dict | None:
    item = db.query(Item).filter(Item.id == item_id).first()
    if item is None:
        return None
    return _item_to_dict(item, now=now or _utc_now())


def _sort_items(
    items: list[Item],
    sort_by: str,
    *,
    origin: tuple[float, float] | None = None,
) -> list[Item]:
    if sort_by == "price_asc":
        return sorted(items, key=lambda item: (Decimal(item.discount_price), item.id))
    if sort_by == "price_desc":
        return sorted(items, key=lambda item: (-Decimal(item.discount_price), item.id))
    if sort_by == "time_left":
        return sorted(items, key=lambda item: (item.deal_ends_at, item.id))
    if sort_by == "discount":
        return sorted(items, key=lambda item: (-discount_percentage(item), item.id))
    if sort_by == "distance":
        if origin is None:
            raise ValueError("distance sorting requires an origin")

        def _distance_key(item: Item) -> tuple:
            distance = distance_miles(origin, item.latitude, item.longitude)
            return (distance is None, distance or 0.0, item.id)

        return sorted(items, key=_distance_key)
    return sorted(items, key=lambda item: item.id)


def list_store_items(
    store_id: str,
    *,
    db: Session,
    now: datetime | None = None,
    sort_by: StoreSort = "default",
) -> dict:
    now = now or _utc_now()
    rows = db.query(Item).filter(Item.store_id == store_id).all()
    active = [item for item in rows if item.deal_ends_at > now]
    closed = [item for item in rows if item.deal_ends_at <= now]
    return {
        "active": [_item_to_dict(item, now=now) for item in _sort_items(active, sort_by)],
        "closed": [_item_to_dict(item, now=now) for item in _sort_items(closed, sort_by)],
    }


def _in_price_range(price: Decimal, price_range: str) -> bool:
    if price_range == "under_5":
        return price < 5
    if price_range == "5_to_20":
        return 5 <= price <= 20
    if price_range == "over_20":
        return price > 20
    raise ValueError(f"unknown price range: {price_range}")


def _in_distance_range(distance: float | None, distance_range: str) -> bool:
    if distance is None:
        return False
    if distance_range == "under_1":
        return distance < 1
    if distance_range == "1_to_5":
        return 1 <= distance <= 5
    if distance_range == "over_5":
        return distance > 5
    raise ValueError(f"unknown distance range: {distance_range}")


def _in_time_left_range(days: float, time_left_range: str) -> bool:
    if time_left_range == "under_1_day":
        return days < 1
    if time_left_range == "1_to_3_days":
        return 1 <= days <= 3
    if time_left_range == "over_3_days":
        return days > 3
    raise ValueError(f"unknown time left range: {time_left_range}")


def search_items(
    *,
    db: Session,
    now: datetime | None = None,
    text: str | None = None,
    category: str | None = None,
    price_range: PriceRange | None = None,
    distance_range: DistanceRange | None = None,
    origin: tuple[float, float] | None = None,
    time_left_range: TimeLeftRange | None = None,
    sort_by: SearchSort = "default",
) -> list[dict]:
    now = now or _utc_now()
    if distance_range is not None and origin is None:
        raise ValueError("distance filter requires an origin")

    query = db.query(Item).filter(Item.deal_ends_at > now)
    if text is not None and text.strip():
        needle = text.strip().lower()
        query = query.filter(
            or_(
                func.lower(Item.name).contains(needle, autoescape=True),
                func.lower(Item.store_name).contains(needle, autoescape=True),
            )
        )
    if category is not None:
        query = query.filter(Item.category == category)

    items = query.all()
    if price_range is not None:
        items = [
            item for item in items
            if _in_price_range(Decimal(item.discount_price), price_range)
        ]
    if distance_range is not None:
        items = [
            item for item in items
            if _in_distance_range(
                distance_miles(origin, item.latitude, item.longitude),
                distance_range,
            )
        ]
    if time_left_range is not None:
        items = [
            item for item in items
            if _in_time_left_range(days_left(item, now), time_left_range)
        ]

    ordered = _sort_items(items, sort_by, origin=origin)
    return [_item_to_dict(item, now=now, origin=origin) for item in ordered]
