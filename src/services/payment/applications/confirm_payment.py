from aws_lambda_powertools import Logger

from services.booking.domain import BookingId, BookingRepository, BookingStatus
from services.payment.domain.entity import Payment
from services.payment.domain.factory import PaymentFactory
from services.payment.domain.gateway import PaymentGateway, PaymentIntentSnapshot
from services.payment.domain.repository import PaymentRepository
from services.shared.domain.exception import (
    BusinessRuleViolationException,
    DuplicateResourceException,
    GatewayRejectedException,
    ResourceNotFoundException,
    UnauthorizedException,
)

logger = Logger(child=True)


class ConfirmPaymentService:
    """カード決済確定ユースケース

    PaymentIntent の成立を確認し、決済を記録して予約を confirmed にする。
    同じ PaymentIntent で再実行しても決済は 1 行のまま。
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        payment_repository: PaymentRepository,
        gateway: PaymentGateway,
        factory: PaymentFactory,
    ) -> None:
        self._booking_repository = booking_repository
        self._payment_repository = payment_repository
        self._gateway = gateway
        self._factory = factory

    def confirm(
        self,
        payment_intent_id: str,
        booking_id: BookingId,
        payer_id: str,
    ) -> Payment:
        """決済を確定する"""
        intent = self._gateway.retrieve_payment_intent(payment_intent_id)
        if not intent.is_captured:
            raise GatewayRejectedException(
                f"Payment not successful. Status: {intent.status}",
                gateway_code=intent.status,
            )

        booking = self._booking_repository.find_by_id(booking_id)
        if booking is None:
            raise ResourceNotFoundException(f"Booking not found: {booking_id}")
        if booking.client_id != payer_id:
            raise UnauthorizedException(
                f"User {payer_id} is not the client of booking {booking_id}"
            )

        payment = self._record_payment(payment_intent_id, booking_id, payer_id, intent)

        if booking.status == BookingStatus.PENDING:
            booking.confirm()
            self._booking_repository.update_status(
                booking, expected_status=BookingStatus.PENDING
            )
        elif booking.status != BookingStatus.CONFIRMED:
            logger.error(
                "Payment captured for a booking that cannot be confirmed",
                extra={
                    "booking_id": str(booking_id),
                    "status": booking.status.value,
                    "payment_intent_id": payment_intent_id,
                },
            )
            raise BusinessRuleViolationException(
                f"Cannot confirm booking in {booking.status.value} status"
            )

        return payment

    def _record_payment(
        self,
        payment_intent_id: str,
        booking_id: BookingId,
        payer_id: str,
        intent: PaymentIntentSnapshot,
    ) -> Payment:
        """決済を記録する。1 つの PaymentIntent は 1 つの予約にしか紐づけない"""
        existing = self._payment_repository.find_by_transaction_id(payment_intent_id)
        if existing is not None and existing.booking_id != booking_id:
            logger.warning(
                "Payment intent already recorded for another booking",
                extra={
                    "payment_intent_id": payment_intent_id,
                    "booking_id": str(booking_id),
                    "recorded_booking_id": str(existing.booking_id),
                },
            )
            raise DuplicateResourceException(
                f"Payment intent {payment_intent_id} is already recorded "
                "for another booking"
            )
        if existing is not None:
            logger.info(
                "Payment already recorded",
                extra={"payment_intent_id": payment_intent_id},
            )
            return existing

        payment = self._factory.create_card_payment(booking_id, payer_id, intent)
        try:
            self._payment_repository.save(payment)
        except DuplicateResourceException:
            logger.info(
                "Payment already recorded",
                extra={"payment_intent_id": payment_intent_id},
            )
            return (
                self._payment_repository.find_by_transaction_id(payment_intent_id)
                or payment
            )
        return payment
