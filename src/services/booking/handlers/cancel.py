import json
from functools import cache

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.data_classes import (
    APIGatewayProxyEvent,
    event_source,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError

from services.booking.applications.cancel_booking import CancelBookingService
from services.booking.domain import BookingId
from services.booking.handlers.request_models import CancelBookingRequest
from services.booking.handlers.response_models import (
    refund_data,
    to_cancel_response,
)
from services.booking.infrastructure.dynamodb_booking_repository import (
    DynamoDBBookingRepository,
)
from services.payment.domain import PaymentFactory
from services.payment.infrastructure.dynamodb_payment_repository import (
    DynamoDBPaymentRepository,
)
from services.payment.infrastructure.stripe_payment_gateway import (
    StripePaymentGateway,
)
from services.shared.config import Settings
from services.shared.domain import DomainException
from services.shared.domain.exception import PersistenceFailedException
from services.shared.utils import (
    api_response,
    error_response,
    validation_error_response,
)

logger = Logger()


@cache
def get_service() -> CancelBookingService:
    """コールドスタート時に 1 度だけ依存関係を組み立てる"""
    settings = Settings.from_env()
    return CancelBookingService(
        booking_repository=DynamoDBBookingRepository(settings.table_name),
        payment_repository=DynamoDBPaymentRepository(settings.table_name),
        gateway=StripePaymentGateway(
            api_key=settings.resolve_stripe_secret_key(),
            timeout_seconds=settings.gateway_timeout_seconds,
            max_network_retries=settings.gateway_max_retries,
            api_base=settings.stripe_api_base,
        ),
        factory=PaymentFactory(),
        lock_lease_seconds=settings.cancellation_lock_lease_seconds,
    )


@logger.inject_lambda_context
@event_source(data_class=APIGatewayProxyEvent)
def lambda_handler(event: APIGatewayProxyEvent, context: LambdaContext) -> dict:
    """予約キャンセル Lambda Handler（部分返金つき）"""

    booking_id = (event.path_parameters or {}).get("booking_id")
    if not booking_id:
        return validation_error_response("booking_id is required")

    try:
        request = CancelBookingRequest.model_validate(json.loads(event.body or "{}"))
    except (ValidationError, ValueError) as e:
        return validation_error_response(str(e))

    logger.append_keys(booking_id=booking_id)
    logger.info("Received cancel booking request")

    try:
        result = get_service().cancel(
            booking_id=BookingId(value=booking_id),
            user_id=request.user_id,
            reason=request.reason,
        )
    except PersistenceFailedException as e:
        extra = {}
        if e.refund is not None and e.split is not None:
            extra["refund"] = refund_data(
                e.refund.refund_id, e.split.refund_amount, e.split.retained_fee
            )
        return error_response(e, extra)
    except DomainException as e:
        logger.info("Cancellation rejected", extra={"error_code": e.code})
        return error_response(e, {"refund": None})
    except Exception:
        logger.exception("Failed to cancel booking")
        return api_response(
            500, {"success": False, "message": "Internal server error", "refund": None}
        )

    return api_response(200, to_cancel_response(result))
