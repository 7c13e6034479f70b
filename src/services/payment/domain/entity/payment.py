from services.booking.domain.value_object import BookingId
from services.payment.domain.enum import PaymentMethod, PaymentStatus
from services.payment.domain.value_object import PaymentId
from services.shared.domain import AggregateRoot, IsoDateTime, Money
from services.shared.domain.exception import BusinessRuleViolationException


class Payment(AggregateRoot[PaymentId]):
    """決済エンティティ

    completed になった決済は変更しない。返金・手数料は別の行として記録する。
    """

    def __init__(
        self,
        id: PaymentId,
        booking_id: BookingId,
        payer_id: str,
        method: PaymentMethod,
        amount: Money,
        status: PaymentStatus = PaymentStatus.PENDING,
        transaction_id: str | None = None,
        metadata: dict | None = None,
        created_at: IsoDateTime | None = None,
    ) -> None:
        super().__init__(id)
        self._booking_id = booking_id
        self._payer_id = payer_id
        self._method = method
        self._amount = amount
        self._status = status
        self._transaction_id = transaction_id
        self._metadata = dict(metadata or {})
        self._created_at = created_at or IsoDateTime.now()

    @property
    def booking_id(self) -> BookingId:
        return self._booking_id

    @property
    def payer_id(self) -> str:
        return self._payer_id

    @property
    def method(self) -> PaymentMethod:
        return self._method

    @property
    def amount(self) -> Money:
        return self._amount

    @property
    def status(self) -> PaymentStatus:
        return self._status

    @property
    def transaction_id(self) -> str | None:
        return self._transaction_id

    @property
    def metadata(self) -> dict:
        return dict(self._metadata)

    @property
    def created_at(self) -> IsoDateTime:
        return self._created_at

    def attach_transaction(self, transaction_id: str, **metadata: object) -> None:
        """ゲートウェイ側の取引IDを紐付ける（pending の間のみ）"""
        if self._status != PaymentStatus.PENDING:
            raise BusinessRuleViolationException(
                f"Cannot attach transaction to payment in {self._status.value} status"
            )
        self._transaction_id = transaction_id
        self._metadata.update(metadata)

    def complete(self) -> None:
        """決済を完了する"""
        if self._status == PaymentStatus.COMPLETED:
            return
        if self._status != PaymentStatus.PENDING:
            raise BusinessRuleViolationException(
                f"Cannot complete payment in {self._status.value} status"
            )
        self._status = PaymentStatus.COMPLETED

    def fail(self) -> None:
        """決済を失敗にする"""
        if self._status == PaymentStatus.FAILED:
            return
        if self._status != PaymentStatus.PENDING:
            raise BusinessRuleViolationException(
                f"Cannot fail payment in {self._status.value} status"
            )
        self._status = PaymentStatus.FAILED

    def is_refundable(self) -> bool:
        """カードゲートウェイ経由で返金できる決済かどうか"""
        return (
            self._status == PaymentStatus.COMPLETED
            and self._method == PaymentMethod.CREDIT_CARD
            and bool(self._transaction_id)
        )
