from functools import cache

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.data_classes import (
    APIGatewayProxyEvent,
    event_source,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError

from services.booking.applications.get_booking import GetBookingService
from services.booking.domain import BookingId
from services.booking.handlers.request_models import GetBookingRequest
from services.booking.handlers.response_models import to_booking_response
from services.booking.infrastructure.dynamodb_booking_repository import (
    DynamoDBBookingRepository,
)
from services.payment.infrastructure.dynamodb_payment_repository import (
    DynamoDBPaymentRepository,
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
def get_service() -> GetBookingService:
    settings = Settings.from_env()
    return GetBookingService(
        booking_repository=DynamoDBBookingRepository(settings.table_name),
        payment_repository=DynamoDBPaymentRepository(settings.table_name),
    )


@logger.inject_lambda_context
@event_source(data_class=APIGatewayProxyEvent)
def lambda_handler(event: APIGatewayProxyEvent, context: LambdaContext) -> dict:
    """予約詳細取得 Lambda Handler"""

    booking_id = (event.path_parameters or {}).get("booking_id")
    if not booking_id:
        return validation_error_response("booking_id is required")

    try:
        request = GetBookingRequest.model_validate(event.query_string_parameters or {})
    except ValidationError as e:
        return validation_error_response(str(e))

    logger.info("Fetching booking details", extra={"booking_id": booking_id})

    try:
        details = get_service().get(BookingId(value=booking_id), request.user_id)
    except DomainException as e:
        return error_response(e)
    except Exception:
        logger.exception("Failed to fetch booking details")
        return api_response(500, {"message": "Internal server error"})

    return api_response(200, to_booking_response(details))
