from dataclasses import dataclass

from aws_lambda_powertools import Logger

from services.booking.domain import BookingId, BookingRepository, BookingStatus
from services.payment.domain.entity import Payment
from services.payment.domain.enum import PaymentStatus
from services.payment.domain.factory import PaymentFactory
from services.payment.domain.factory.payment_factory import CryptoPaymentDetails
from services.payment.domain.gateway import Charge, ChargeRequest, CryptoChargeGateway
from services.payment.domain.repository import PaymentRepository
from services.shared.domain.exception import (
    BusinessRuleViolationException,
    ResourceNotFoundException,
    UnauthorizedException,
)

logger = Logger(child=True)

APP_NAME = "BRICOLLANO"
DEFAULT_DESCRIPTION = "Payment for service booking"


@dataclass(frozen=True)
class CryptoChargeResult:
    """作成したチャージと pending の決済"""

    payment: Payment
    charge: Charge


class CreateCryptoChargeService:
    """暗号資産チャージ作成ユースケース

    pending の決済を先に記録し、チャージ作成後に取引IDを紐付ける。
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        payment_repository: PaymentRepository,
        gateway: CryptoChargeGateway,
        factory: PaymentFactory,
    ) -> None:
        self._booking_repository = booking_repository
        self._payment_repository = payment_repository
        self._gateway = gateway
        self._factory = factory

    def create(
        self,
        booking_id: BookingId,
        payer_id: str,
        description: str | None = None,
    ) -> CryptoChargeResult:
        booking = self._booking_repository.find_by_id(booking_id)
        if booking is None:
            raise ResourceNotFoundException(f"Booking not found: {booking_id}")
        if booking.client_id != payer_id:
            raise UnauthorizedException(
                f"User {payer_id} is not the client of booking {booking_id}"
            )
        if booking.status != BookingStatus.PENDING:
            raise BusinessRuleViolationException(
                f"Cannot pay for booking in {booking.status.value} status"
            )

        details: CryptoPaymentDetails = {
            "charge_name": "Service Payment",
            "description": description or DEFAULT_DESCRIPTION,
        }
        payment = self._factory.create_crypto_payment(
            booking_id, payer_id, booking.total_amount, details
        )
        self._payment_repository.save(payment)

        charge = self._gateway.create_charge(
            ChargeRequest(
                name=f"{APP_NAME} Service Payment #{payment.id}",
                description=details["description"],
                amount=booking.total_amount,
                metadata={
                    "payment_id": str(payment.id),
                    "booking_id": str(booking_id),
                    "app_name": APP_NAME,
                    "customer_id": payer_id,
                },
            )
        )

        payment.attach_transaction(
            charge.id,
            coinbase_charge_id=charge.id,
            hosted_url=charge.hosted_url,
            expires_at=str(charge.expires_at) if charge.expires_at else None,
        )
        self._payment_repository.update(payment, expected_status=PaymentStatus.PENDING)
        logger.info(
            "Crypto charge attached to payment",
            extra={"payment_id": str(payment.id), "charge_id": charge.id},
        )
        return CryptoChargeResult(payment=payment, charge=charge)
