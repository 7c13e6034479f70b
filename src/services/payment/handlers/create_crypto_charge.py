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
from services.payment.applications.create_crypto_charge import (
    CreateCryptoChargeService,
)
from services.payment.domain import PaymentFactory
from services.payment.handlers.request_models import CreateCryptoChargeRequest
from services.payment.handlers.response_models import to_charge_response
from services.payment.infrastructure.coinbase_commerce_client import (
    CoinbaseCommerceClient,
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
def get_service() -> CreateCryptoChargeService:
    settings = Settings.from_env()
    return CreateCryptoChargeService(
        booking_repository=DynamoDBBookingRepository(settings.table_name),
        payment_repository=DynamoDBPaymentRepository(settings.table_name),
        gateway=CoinbaseCommerceClient(
            api_key=settings.resolve_coinbase_api_key(),
            base_url=settings.coinbase_api_base,
            timeout_seconds=settings.gateway_timeout_seconds,
        ),
        factory=PaymentFactory(),
    )


@logger.inject_lambda_context
@event_source(data_class=APIGatewayProxyEvent)
def lambda_handler(event: APIGatewayProxyEvent, context: LambdaContext) -> dict:
    """暗号資産チャージ作成 Lambda Handler"""

    try:
        request = CreateCryptoChargeRequest.model_validate(
            json.loads(event.body or "{}")
        )
    except (ValidationError, ValueError) as e:
        return validation_error_response(str(e))

    logger.info(
        "Received create crypto charge request",
        extra={"booking_id": request.booking_id},
    )

    try:
        result = get_service().create(
            booking_id=BookingId(value=request.booking_id),
            payer_id=request.payer_id,
            description=request.description,
        )
    except DomainException as e:
        return error_response(e)
    except Exception:
        logger.exception("Failed to create crypto charge")
        return api_response(500, {"message": "Internal server error"})

    return api_response(201, to_charge_response(result))
