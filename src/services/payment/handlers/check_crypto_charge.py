from functools import cache

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.data_classes import (
    APIGatewayProxyEvent,
    event_source,
)
from aws_lambda_powertools.utilities.typing import LambdaContext

from services.booking.infrastructure.dynamodb_booking_repository import (
    DynamoDBBookingRepository,
)
from services.payment.applications.check_crypto_charge import (
    CheckCryptoChargeService,
)
from services.payment.applications.poll_crypto_charge import ChargeStatusPoller
from services.payment.handlers.response_models import to_status_response
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
def get_settings() -> Settings:
    return Settings.from_env()


@cache
def get_service() -> CheckCryptoChargeService:
    settings = get_settings()
    return CheckCryptoChargeService(
        booking_repository=DynamoDBBookingRepository(settings.table_name),
        payment_repository=DynamoDBPaymentRepository(settings.table_name),
        gateway=CoinbaseCommerceClient(
            api_key=settings.resolve_coinbase_api_key(),
            base_url=settings.coinbase_api_base,
            timeout_seconds=settings.gateway_timeout_seconds,
        ),
    )


@logger.inject_lambda_context
@event_source(data_class=APIGatewayProxyEvent)
def lambda_handler(event: APIGatewayProxyEvent, context: LambdaContext) -> dict:
    """暗号資産チャージ状態確認 Lambda Handler

    クライアントはレスポンスの next_poll_at まで待って再度呼び出す。
    """

    charge_id = (event.path_parameters or {}).get("charge_id")
    if not charge_id:
        return validation_error_response("charge_id is required")

    logger.info("Checking crypto charge", extra={"charge_id": charge_id})

    poller = ChargeStatusPoller(
        service=get_service(),
        charge_id=charge_id,
        interval_seconds=get_settings().crypto_poll_interval_seconds,
    )
    try:
        result = poller.poll_once()
    except DomainException as e:
        return error_response(e)
    except Exception:
        logger.exception("Failed to check crypto charge")
        return api_response(500, {"message": "Internal server error"})

    return api_response(200, to_status_response(charge_id, result))
