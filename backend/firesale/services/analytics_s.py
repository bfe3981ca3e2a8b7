from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Literal

from sqlalchemy.orm import Session

from firesale.db.models import Purchase

Period = Literal["week", "month", "year"]

_PERIOD_LENGTHS = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def period_range(period: Period, now: datetime) -> tuple[datetime, datetime]:
    if period not in _PERIOD_LENGTHS:
        raise ValueError(f"unknown period: {period}")
    return now - _PERIOD_LENGTHS[period], now


def store_analytics(
    store_id: str,
    *,
    start: datetime,
    end: datetime,
    db: Session,
) -> dict:
    """Sales figures for one store over purchases created in ``(start, end]``."""
    purchases = (
        db.query(Purchase)
        .filter(
            Purchase.store_id == store_id,
            Purchase.created_at > start,
            Purchase.created_at <= end,
        )
        .order_by(Purchase.created_at.asc(), Purchase.id.asc())
        .all()
    )

    total_revenue = Decimal("0")
    items_sold = 0
    by_day: dict[str, Decimal] = defaultdict(Decimal)
    by_item: dict[str, Decimal] = defaultdict(Decimal)
    by_category: dict[str, int] = defaultdict(int)

    for purchase in purchases:
        line_total = Decimal(purchase.unit_price) * int(purchase.quantity)
        total_revenue += line_total
        items_sold += int(purchase.quantity)
        by_day[purchase.created_at.strftime("%Y-%m-%d")] += line_total
        by_item[purchase.item_name] += line_total
        by_category[purchase.category] += int(purchase.quantity)

    return {
        "store_id": store_id,
        "start": start,
        "end": end,
        "sales_made": len(purchases),
        "total_revenue": total_revenue,
        "items_sold": items_sold,
        "sales_by_day": [
            {"day": day, "sales": amount}
            for day, amount in sorted(by_day.items())
        ],
        "top_items": [
            {"name": name, "revenue": revenue}
            for name, revenue in sorted(by_item.items(), key=lambda entry: (-entry[1], entry[0]))
        ],
        "category_distribution": [
            {
                "category": category,
                "percentage": (quantity / items_sold) if items_sold else 0.0,
            }
            for category, quantity in sorted(by_category.items())
        ],
    }
