from services.booking.domain.enum import BookingStatus
from services.booking.domain.event import BookingCancelled, BookingConfirmed
from services.booking.domain.value_object import BookingId, ScheduledWindow
from services.shared.domain import AggregateRoot, IsoDateTime, Money
from services.shared.domain.exception import (
    BusinessRuleViolationException,
    NotCancellableException,
    UnauthorizedException,
)


class Booking(AggregateRoot[BookingId]):
    """予約（クライアントと作業者の間の作業予定）"""

    def __init__(
        self,
        id: BookingId,
        client_id: str,
        worker_id: str,
        service_id: str,
        schedule: ScheduledWindow,
        address: str,
        total_amount: Money,
        status: BookingStatus = BookingStatus.PENDING,
        created_at: IsoDateTime | None = None,
        updated_at: IsoDateTime | None = None,
        cancellation_reason: str | None = None,
        cancelled_at: IsoDateTime | None = None,
    ) -> None:
        super().__init__(id)
        self._client_id = client_id
        self._worker_id = worker_id
        self._service_id = service_id
        self._schedule = schedule
        self._address = address
        self._total_amount = total_amount
        self._status = status
        self._created_at = created_at or IsoDateTime.now()
        self._updated_at = updated_at or self._created_at
        self._cancellation_reason = cancellation_reason
        self._cancelled_at = cancelled_at

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def service_id(self) -> str:
        return self._service_id

    @property
    def schedule(self) -> ScheduledWindow:
        return self._schedule

    @property
    def address(self) -> str:
        return self._address

    @property
    def total_amount(self) -> Money:
        return self._total_amount

    @property
    def status(self) -> BookingStatus:
        return self._status

    @property
    def created_at(self) -> IsoDateTime:
        return self._created_at

    @property
    def updated_at(self) -> IsoDateTime:
        return self._updated_at

    @property
    def cancellation_reason(self) -> str | None:
        return self._cancellation_reason

    @property
    def cancelled_at(self) -> IsoDateTime | None:
        return self._cancelled_at

    def is_owned_by(self, user_id: str) -> bool:
        """予約の当事者（クライアントまたは作業者）かどうか"""
        return user_id in (self._client_id, self._worker_id)

    def ensure_cancellable_by(self, user_id: str) -> None:
        """キャンセル可能かどうかを検証する"""
        if not self.is_owned_by(user_id):
            raise UnauthorizedException(
                f"User {user_id} is not allowed to cancel booking {self.id}"
            )
        if not self._status.is_cancellable:
            raise NotCancellableException(
                f"Booking {self.id} cannot be cancelled in {self._status.value} status"
            )

    def confirm(self, at: IsoDateTime | None = None) -> None:
        """予約を確定する（pending -> confirmed）"""
        if self._status == BookingStatus.CONFIRMED:
            return
        if self._status != BookingStatus.PENDING:
            raise BusinessRuleViolationException(
                f"Cannot confirm booking in {self._status.value} status"
            )
        self._status = BookingStatus.CONFIRMED
        self._updated_at = at or IsoDateTime.now()
        self.record_event(BookingConfirmed(booking_id=self.id, occurred_at=self._updated_at))

    def cancel(self, cancelled_by: str, reason: str, at: IsoDateTime | None = None) -> None:
        """予約をキャンセルする（pending / confirmed -> cancelled）

        終端状態の予約は再キャンセルできない。
        """
        self.ensure_cancellable_by(cancelled_by)
        now = at or IsoDateTime.now()
        self._status = BookingStatus.CANCELLED
        self._cancellation_reason = reason
        self._cancelled_at = now
        self._updated_at = now
        self.record_event(
            BookingCancelled(
                booking_id=self.id,
                cancelled_by=cancelled_by,
                reason=reason,
                occurred_at=now,
            )
        )

    def complete(self, at: IsoDateTime | None = None) -> None:
        """作業完了（confirmed -> completed）"""
        if self._status != BookingStatus.CONFIRMED:
            raise BusinessRuleViolationException(
                f"Cannot complete booking in {self._status.value} status"
            )
        self._status = BookingStatus.COMPLETED
        self._updated_at = at or IsoDateTime.now()

    def reject(self, at: IsoDateTime | None = None) -> None:
        """作業者による辞退（pending -> rejected）"""
        if self._status != BookingStatus.PENDING:
            raise BusinessRuleViolationException(
                f"Cannot reject booking in {self._status.value} status"
            )
        self._status = BookingStatus.REJECTED
        self._updated_at = at or IsoDateTime.now()
