from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ReserveItemRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    item_id: int
    quantity: int = Field(default=1, gt=0, le=10)


class BuyNowRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    item_id: int
    quantity: int = Field(default=1, gt=0, le=10)


class ReservationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    item_id: int
    user_id: str
    store_id: str
    quantity: int
    status: Literal["pending", "fulfilled", "expired", "cancelled"]
    created_at: datetime
    expires_at: datetime
    closed_at: datetime | None = None
    reason: str | None = None


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    item_id: int
    reservation_id: int | None = None
    user_id: str
    store_id: str
    item_name: str
    category: str
    unit_price: Decimal
    quantity: int
    created_at: datetime
    pickup_by: datetime


class CartEntryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reservation_id: int
    item_id: int
    store_id: str
    item_name: str | None = None
    store_name: str | None = None
    discount_price: Decimal | None = None
    photo_url: str | None = None
    quantity: int
    created_at: datetime
    expires_at: datetime
    seconds_left: int


class ExpireReservationsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    expired_count: int
