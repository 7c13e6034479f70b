from dataclasses import dataclass

from services.booking.domain.value_object import BookingId
from services.shared.domain import IsoDateTime


@dataclass(frozen=True)
class BookingConfirmed:
    """予約が確定された"""

    booking_id: BookingId
    occurred_at: IsoDateTime


@dataclass(frozen=True)
class BookingCancelled:
    """予約がキャンセルされた"""

    booking_id: BookingId
    cancelled_by: str
    reason: str
    occurred_at: IsoDateTime
