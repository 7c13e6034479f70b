import json
from functools import cache

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.data_classes import (
    APIGatewayProxyEvent,
    event_source,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError

from services.booking.domain import BookingId
from services.booking.infrastructure.dynamodb_booking_repository import (
    DynamoDBBookingRepository,
)
from services.payment.applications.confirm_payment import ConfirmPaymentService
from services.payment.domain import PaymentFactory
from services.payment.handlers.request_models import ConfirmPaymentRequest
from services.payment.handlers.response_models import to_response
from services.payment.infrastructure.dynamodb_payment_repository import (
    DynamoDBPaymentRepository,
)
from services.payment.infrastructure.stripe_payment_gateway import (
    StripePaymentGateway,
)
from services.shared.config import Settings
from services.shared.domain import DomainException
from services.shared.utils import (
    api_response,
    error_response,
    validation_error_response,
)

logger = Logger()


@cache
def get_service() -> ConfirmPaymentService:
    settings = Settings.from_env()
    return ConfirmPaymentService(
        booking_repository=DynamoDBBookingRepository(settings.table_name),
        payment_repository=DynamoDBPaymentRepository(settings.table_name),
        gateway=StripePaymentGateway(
            api_key=settings.resolve_stripe_secret_key(),
            timeout_seconds=settings.gateway_timeout_seconds,
            max_network_retries=settings.gateway_max_retries,
            api_base=settings.stripe_api_base,
        ),
        factory=PaymentFactory(),
    )


@logger.inject_lambda_context
@event_source(data_class=APIGatewayProxyEvent)
def lambda_handler(event: APIGatewayProxyEvent, context: LambdaContext) -> dict:
    """カード決済確定 Lambda Handler"""

    try:
        request = ConfirmPaymentRequest.model_validate(json.loads(event.body or "{}"))
    except (ValidationError, ValueError) as e:
        return validation_error_response(str(e))

    logger.info(
        "Received confirm payment request",
        extra={
            "booking_id": request.booking_id,
            "payment_intent_id": request.payment_intent_id,
        },
    )

    try:
        payment = get_service().confirm(
            payment_intent_id=request.payment_intent_id,
            booking_id=BookingId(value=request.booking_id),
            payer_id=request.payer_id,
        )
    except DomainException as e:
        return error_response(e)
    except Exception:
        logger.exception("Failed to confirm payment")
        return api_response(500, {"message": "Internal server error"})

    return api_response(200, to_response(payment))
