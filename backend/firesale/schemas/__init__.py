from firesale.schemas.items_s import CreateItemRequest
from firesale.schemas.reservations_s import (
    BuyNowRequest,
    CartEntryResponse,
    ExpireReservationsResponse,
    PurchaseResponse,
    ReservationResponse,
    ReserveItemRequest,
)

__all__ = [
    "CreateItemRequest",
    "ReserveItemRequest",
    "BuyNowRequest",
    "ReservationResponse",
    "PurchaseResponse",
    "CartEntryResponse",
    "ExpireReservationsResponse",
]
