from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable

from aws_lambda_powertools import Logger

from services.booking.domain import Booking, BookingId, BookingRepository, BookingStatus
from services.payment.domain import (
    Payment,
    PaymentFactory,
    PaymentGateway,
    PaymentRepository,
    RefundSplit,
    compute_refund_split,
)
from services.payment.domain.gateway import RefundRequest, RefundResult
from services.shared.domain import IsoDateTime, Money
from services.shared.domain.exception import (
    PersistenceFailedException,
    ResourceNotFoundException,
)

logger = Logger(child=True)

DEFAULT_REASON = "Customer requested cancellation"
# Lambda のタイムアウトより長くする
DEFAULT_LOCK_LEASE_SECONDS = 120


@dataclass(frozen=True)
class RefundSummary:
    """キャンセルに伴う返金の内訳"""

    refund_id: str
    refund_amount: Money
    cancellation_fee: Money


@dataclass(frozen=True)
class CancellationResult:
    """キャンセル結果"""

    booking_id: BookingId
    status: BookingStatus
    refund: RefundSummary | None
    message: str


def refund_message(refund_amount: Money, cancellation_fee: Money) -> str:
    """利用者向けの返金メッセージ"""
    return (
        f"Refund of {refund_amount.display()} processed. "
        f"Cancellation fee: {cancellation_fee.display()}."
    )


class CancelBookingService:
    """予約キャンセルユースケース（部分返金つき）

    1. 予約の検証（権限・ステータス）
    2. 完了済み決済の検索と返金額の計算
    3. 予約ごとのキャンセルロック取得（期限つき）
    4. ゲートウェイへの返金
    5. 手数料台帳とステータス遷移を 1 トランザクションで記録

    返金が成功するまで予約はキャンセル扱いにしない。返金前に失敗した場合はロックを解放する。
    返金成功後に記録が失敗した場合は自動リトライせず、突き合わせ対象として報告する。
    ロックは期限切れで取り直せるため、途中でプロセスが止まっても再実行できる
    （冪等性キーが同じなので返金は二重にならない）。
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        payment_repository: PaymentRepository,
        gateway: PaymentGateway,
        factory: PaymentFactory,
        policy: Callable[[Money], RefundSplit] = compute_refund_split,
        lock_lease_seconds: int = DEFAULT_LOCK_LEASE_SECONDS,
        clock: Callable[[], IsoDateTime] = IsoDateTime.now,
    ) -> None:
        self._booking_repository = booking_repository
        self._payment_repository = payment_repository
        self._gateway = gateway
        self._factory = factory
        self._policy = policy
        self._lock_lease_seconds = lock_lease_seconds
        self._clock = clock

    def cancel(
        self,
        booking_id: BookingId,
        user_id: str,
        reason: str | None = None,
    ) -> CancellationResult:
        """予約をキャンセルする"""
        reason = reason or DEFAULT_REASON

        booking = self._booking_repository.find_by_id(booking_id)
        if booking is None:
            raise ResourceNotFoundException(f"Booking not found: {booking_id}")
        booking.ensure_cancellable_by(user_id)

        payment = self._payment_repository.find_completed_primary_by_booking(booking_id)
        if payment is None or not payment.is_refundable():
            return self._cancel_without_refund(booking, user_id, reason, payment)

        split = self._policy(payment.amount)
        lock_token = uuid.uuid4().hex
        now = self._clock()
        self._booking_repository.acquire_cancellation_lock(
            booking_id,
            lock_token,
            now=now,
            expires_at=now.plus_seconds(self._lock_lease_seconds),
        )

        refund = self._issue_refund(booking, payment, split, reason, lock_token)

        try:
            booking.cancel(cancelled_by=user_id, reason=reason)
            fee = self._factory.create_cancellation_fee(
                booking_id=booking_id,
                payer_id=payment.payer_id,
                split=split,
                refund=refund,
                reason=reason,
                payment_intent_id=payment.transaction_id or "",
            )
            self._booking_repository.commit_cancellation(booking, fee, lock_token)
        except Exception as e:
            logger.error(
                "Refund issued but cancellation could not be recorded",
                extra={
                    "booking_id": str(booking_id),
                    "refund_id": refund.refund_id,
                    "refund_amount": str(split.refund_amount.amount),
                    "cancellation_fee": str(split.retained_fee.amount),
                    "error": str(e),
                    "reconciliation_required": True,
                },
            )
            raise PersistenceFailedException(
                f"Refund {refund.refund_id} was issued but booking {booking_id} "
                "could not be marked as cancelled",
                booking_id=str(booking_id),
                refund=refund,
                split=split,
            ) from e

        self._log_events(booking)
        return CancellationResult(
            booking_id=booking_id,
            status=booking.status,
            refund=RefundSummary(
                refund_id=refund.refund_id,
                refund_amount=split.refund_amount,
                cancellation_fee=split.retained_fee,
            ),
            message=refund_message(split.refund_amount, split.retained_fee),
        )

    def _cancel_without_refund(
        self,
        booking: Booking,
        user_id: str,
        reason: str,
        payment: Payment | None,
    ) -> CancellationResult:
        """決済が無い（またはカード以外の）予約をキャンセルする"""
        if payment is not None:
            logger.warning(
                "Completed payment is not refundable through the card gateway",
                extra={
                    "booking_id": str(booking.id),
                    "payment_id": str(payment.id),
                    "method": payment.method.value,
                },
            )
        booking.cancel(cancelled_by=user_id, reason=reason)
        self._booking_repository.commit_cancellation(booking, None, None)
        self._log_events(booking)
        return CancellationResult(
            booking_id=booking.id,
            status=booking.status,
            refund=None,
            message="Booking cancelled.",
        )

    def _issue_refund(
        self,
        booking: Booking,
        payment: Payment,
        split: RefundSplit,
        reason: str,
        lock_token: str,
    ) -> RefundResult:
        """返金を発行する。失敗した場合はロックを解放して元の例外を再送出する"""
        request = RefundRequest(
            booking_id=booking.id,
            payment_intent_id=payment.transaction_id or "",
            amount=split.refund_amount,
            reason=reason,
            metadata={
                "booking_id": str(booking.id),
                "cancellation_fee": str(split.retained_fee.amount),
                "refund_percentage": str(split.refund_percentage),
                "cancellation_reason": reason,
            },
        )
        try:
            return self._gateway.issue_refund(request)
        except Exception as e:
            logger.warning(
                "Refund failed, releasing cancellation lock",
                extra={
                    "booking_id": str(booking.id),
                    "error_code": getattr(e, "code", type(e).__name__),
                    "gateway_code": getattr(e, "gateway_code", None),
                    "idempotency_key": request.idempotency_key,
                },
            )
            self._release_lock(booking.id, lock_token)
            raise

    def _release_lock(self, booking_id: BookingId, lock_token: str) -> None:
        """ロックを解放する（失敗してもリース期限で失効する）"""
        try:
            self._booking_repository.release_cancellation_lock(booking_id, lock_token)
        except Exception:
            logger.exception(
                "Could not release cancellation lock, it will expire",
                extra={
                    "booking_id": str(booking_id),
                    "lease_seconds": self._lock_lease_seconds,
                },
            )

    def _log_events(self, booking: Booking) -> None:
        for event in booking.pull_domain_events():
            logger.info(
                "Domain event",
                extra={"event": type(event).__name__, "booking_id": str(booking.id)},
            )
