from dataclasses import dataclass

from services.booking.domain import Booking, BookingId, BookingRepository
from services.payment.domain import Payment, PaymentRepository
from services.shared.domain.exception import (
    ResourceNotFoundException,
    UnauthorizedException,
)


@dataclass(frozen=True)
class BookingDetails:
    """予約とそれに紐づく決済（台帳行を含む）"""

    booking: Booking
    payments: list[Payment]


class GetBookingService:
    """予約詳細取得ユースケース"""

    def __init__(
        self,
        booking_repository: BookingRepository,
        payment_repository: PaymentRepository,
    ) -> None:
        self._booking_repository = booking_repository
        self._payment_repository = payment_repository

    def get(self, booking_id: BookingId, user_id: str) -> BookingDetails:
        booking = self._booking_repository.find_by_id(booking_id)
        if booking is None:
            raise ResourceNotFoundException(f"Booking not found: {booking_id}")
        if not booking.is_owned_by(user_id):
            raise UnauthorizedException(
                f"User {user_id} is not allowed to view booking {booking_id}"
            )
        payments = sorted(
            self._payment_repository.find_by_booking_id(booking_id),
            key=lambda payment: payment.created_at.value,
        )
        return BookingDetails(booking=booking, payments=payments)
