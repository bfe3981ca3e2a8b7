from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CreateItemRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = Field(min_length=1, max_length=120)
    original_price: float = Field(ge=0)
    discount_price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=0)
    store_name: str | None = None
    category: Literal["FireKitchen", "FireClothing", "FireHouse", "Other"] = "Other"
    time_left: str = Field(min_length=1, examples=["3 days"])
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    photo_url: str | None = None
