from typing import TypedDict

from services.booking.domain.value_object import BookingId
from services.payment.domain.entity.payment import Payment
from services.payment.domain.enum import PaymentMethod, PaymentStatus
from services.payment.domain.gateway import PaymentIntentSnapshot, RefundResult
from services.payment.domain.policy import RefundSplit
from services.payment.domain.value_object.payment_id import PaymentId
from services.shared.domain import Money


class CryptoPaymentDetails(TypedDict):
    """暗号資産決済の入力データ構造（TypedDict）"""

    charge_name: str
    description: str


class PaymentFactory:
    """決済ファクトリ"""

    def create_card_payment(
        self,
        booking_id: BookingId,
        payer_id: str,
        payment_intent: PaymentIntentSnapshot,
    ) -> Payment:
        """決済済みの PaymentIntent からカード決済を生成する"""
        return Payment(
            id=PaymentId.for_payment_intent(payment_intent.id),
            booking_id=booking_id,
            payer_id=payer_id,
            method=PaymentMethod.CREDIT_CARD,
            amount=payment_intent.amount,
            status=PaymentStatus.COMPLETED,
            transaction_id=payment_intent.id,
            metadata={"payment_method": payment_intent.payment_method},
        )

    def create_crypto_payment(
        self,
        booking_id: BookingId,
        payer_id: str,
        amount: Money,
        details: CryptoPaymentDetails,
    ) -> Payment:
        """チャージ作成前の pending な暗号資産決済を生成する"""
        return Payment(
            id=PaymentId.generate(),
            booking_id=booking_id,
            payer_id=payer_id,
            method=PaymentMethod.CRYPTO,
            amount=amount,
            status=PaymentStatus.PENDING,
            metadata={
                "charge_name": details["charge_name"],
                "description": details["description"],
            },
        )

    def create_cancellation_fee(
        self,
        booking_id: BookingId,
        payer_id: str,
        split: RefundSplit,
        refund: RefundResult,
        reason: str,
        payment_intent_id: str,
    ) -> Payment:
        """キャンセル手数料（返金しなかった分）の台帳行を生成する"""
        return Payment(
            id=PaymentId.cancellation_fee_for(booking_id),
            booking_id=booking_id,
            payer_id=payer_id,
            method=PaymentMethod.CANCELLATION_FEE,
            amount=split.retained_fee,
            status=PaymentStatus.COMPLETED,
            transaction_id=payment_intent_id,
            metadata={
                "refund_id": refund.refund_id,
                "refund_status": refund.status.value,
                "original_amount": str(split.total.amount),
                "refund_amount": str(split.refund_amount.amount),
                "refund_percentage": str(split.refund_percentage),
                "reason": reason,
            },
        )
