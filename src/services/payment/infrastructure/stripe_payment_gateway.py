import stripe
from aws_lambda_powertools import Logger

from services.payment.domain.gateway import (
    PaymentGateway,
    PaymentIntentSnapshot,
    RefundRequest,
    RefundResult,
    RefundStatus,
)
from services.shared.domain import Currency, Money
from services.shared.domain.exception import (
    GatewayException,
    GatewayRejectedException,
    GatewayTransientException,
)

logger = Logger(child=True)

# Stripe の返金ステータス -> ドメインの返金ステータス
_REFUND_STATUS = {
    "succeeded": RefundStatus.SUCCEEDED,
    "pending": RefundStatus.PENDING,
    "requires_action": RefundStatus.PENDING,
}


class StripePaymentGateway(PaymentGateway):
    """Stripe を使用した PaymentGateway の具象実装

    ライブラリ側の自動リトライ（max_network_retries）は同じ冪等性キーを再利用する。
    """

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 8.0,
        max_network_retries: int = 2,
        api_base: str | None = None,
    ) -> None:
        stripe.api_key = api_key
        stripe.max_network_retries = max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)
        if api_base:
            stripe.api_base = api_base

    def issue_refund(self, request: RefundRequest) -> RefundResult:
        """PaymentIntent に対して部分返金を発行する"""
        logger.info(
            "Issuing Stripe refund",
            extra={
                "booking_id": str(request.booking_id),
                "payment_intent_id": request.payment_intent_id,
                "amount_minor_units": request.amount.to_minor_units(),
                "idempotency_key": request.idempotency_key,
            },
        )
        try:
            refund = stripe.Refund.create(
                payment_intent=request.payment_intent_id,
                amount=request.amount.to_minor_units(),
                reason="requested_by_customer",
                metadata=request.metadata,
                idempotency_key=request.idempotency_key,
            )
        except stripe.StripeError as e:
            raise _translate_error(e, "Refund failed") from e

        status = _REFUND_STATUS.get(refund.status)
        if status is None:
            raise GatewayRejectedException(
                f"Refund {refund.id} ended in {refund.status} status",
                gateway_code=refund.status,
            )

        return RefundResult(
            refund_id=refund.id,
            status=status,
            amount=Money.from_minor_units(refund.amount, request.amount.currency),
        )

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentSnapshot:
        """PaymentIntent を取得する"""
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            raise _translate_error(e, "Failed to retrieve payment intent") from e

        return PaymentIntentSnapshot(
            id=intent.id,
            status=intent.status,
            amount=Money.from_minor_units(intent.amount, Currency(intent.currency)),
            payment_method=intent.payment_method,
        )


def _translate_error(error: stripe.StripeError, prefix: str) -> GatewayException:
    """Stripe の例外をドメイン例外に変換する"""
    message = f"{prefix}: {error.user_message or error}"
    if isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError)):
        return GatewayTransientException(message, gateway_code=error.code)
    if isinstance(error, stripe.APIError):
        # 5xx 系
        return GatewayTransientException(message, gateway_code=error.code)
    return GatewayRejectedException(message, gateway_code=error.code)
