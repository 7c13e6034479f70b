from abc import abstractmethod

from services.booking.domain.value_object import BookingId
from services.payment.domain.entity.payment import Payment
from services.payment.domain.enum import PaymentStatus
from services.payment.domain.value_object.payment_id import PaymentId
from services.shared.domain import Repository


class PaymentRepository(Repository[Payment, PaymentId]):
    """決済リポジトリのインターフェース"""

    @abstractmethod
    def save(self, payment: Payment) -> None:
        """決済を保存する（既存の場合は DuplicateResourceException）"""
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, payment_id: PaymentId) -> Payment | None:
        """決済IDで検索する"""
        raise NotImplementedError

    @abstractmethod
    def find_by_booking_id(self, booking_id: BookingId) -> list[Payment]:
        """予約に紐づく決済をすべて取得する"""
        raise NotImplementedError

    @abstractmethod
    def find_by_transaction_id(self, transaction_id: str) -> Payment | None:
        """ゲートウェイの取引IDで検索する"""
        raise NotImplementedError

    @abstractmethod
    def update(self, payment: Payment, expected_status: PaymentStatus) -> None:
        """決済を条件付きで更新する"""
        raise NotImplementedError

    def find_completed_primary_by_booking(self, booking_id: BookingId) -> Payment | None:
        """予約代金として完了済みの決済（カード / 暗号資産）を取得する

        複数ある場合は最新のものを返す。
        """
        candidates = [
            payment
            for payment in self.find_by_booking_id(booking_id)
            if payment.method.is_primary and payment.status == PaymentStatus.COMPLETED
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda payment: payment.created_at.value)
