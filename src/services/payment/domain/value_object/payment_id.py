from __future__ import annotations

import uuid
from dataclasses import dataclass

from services.booking.domain.value_object import BookingId


@dataclass(frozen=True)
class PaymentId:
    """決済ID"""

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("PaymentId cannot be empty")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def for_payment_intent(cls, payment_intent_id: str) -> PaymentId:
        """PaymentIntent ID からカード決済の ID を生成する（同じ Intent は同じ ID）"""
        return cls(value=f"card_{payment_intent_id}")

    @classmethod
    def cancellation_fee_for(cls, booking_id: BookingId) -> PaymentId:
        """予約 ID からキャンセル手数料台帳の ID を生成する（予約ごとに 1 行）"""
        return cls(value=f"cancellation_fee_for_{booking_id}")

    @classmethod
    def generate(cls) -> PaymentId:
        """新しい ID を採番する"""
        return cls(value=uuid.uuid4().hex)
