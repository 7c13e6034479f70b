from aws_lambda_powertools import Logger

from services.booking.domain import BookingRepository, BookingStatus
from services.payment.domain.enum import PaymentStatus
from services.payment.domain.gateway import Charge, ChargeStatus, CryptoChargeGateway
from services.payment.domain.repository import PaymentRepository

logger = Logger(child=True)


class CheckCryptoChargeService:
    """暗号資産チャージの状態確認ユースケース

    支払済みなら決済を completed にして予約を確定し、
    期限切れ・キャンセルなら決済を failed にする。
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        payment_repository: PaymentRepository,
        gateway: CryptoChargeGateway,
    ) -> None:
        self._booking_repository = booking_repository
        self._payment_repository = payment_repository
        self._gateway = gateway

    def check(self, charge_id: str) -> Charge:
        charge = self._gateway.retrieve_charge(charge_id)
        if charge.status.is_paid:
            self._mark_completed(charge)
        elif charge.status in (ChargeStatus.EXPIRED, ChargeStatus.CANCELED):
            self._mark_failed(charge)
        return charge

    def _mark_completed(self, charge: Charge) -> None:
        payment = self._payment_repository.find_by_transaction_id(charge.id)
        if payment is None:
            logger.warning("No payment for crypto charge", extra={"charge_id": charge.id})
            return
        if payment.status == PaymentStatus.PENDING:
            payment.complete()
            self._payment_repository.update(
                payment, expected_status=PaymentStatus.PENDING
            )
            logger.info(
                "Crypto payment completed",
                extra={
                    "payment_id": str(payment.id),
                    "network": charge.network,
                    "transaction_hash": charge.transaction_hash,
                },
            )

        booking = self._booking_repository.find_by_id(payment.booking_id)
        if booking is not None and booking.status == BookingStatus.PENDING:
            booking.confirm()
            self._booking_repository.update_status(
                booking, expected_status=BookingStatus.PENDING
            )
        elif booking is None or booking.status != BookingStatus.CONFIRMED:
            # 入金済みだが予約は有効でない（自動返金はしない）
            logger.warning(
                "Crypto payment received for a booking that is no longer active",
                extra={
                    "booking_id": str(payment.booking_id),
                    "status": booking.status.value if booking else None,
                    "payment_id": str(payment.id),
                    "charge_id": charge.id,
                    "amount": str(payment.amount.amount),
                    "reconciliation_required": True,
                },
            )

    def _mark_failed(self, charge: Charge) -> None:
        payment = self._payment_repository.find_by_transaction_id(charge.id)
        if payment is None or payment.status != PaymentStatus.PENDING:
            return
        payment.fail()
        self._payment_repository.update(payment, expected_status=PaymentStatus.PENDING)
        logger.info(
            "Crypto payment failed",
            extra={"payment_id": str(payment.id), "charge_status": charge.status.value},
        )
