import datetime

from aws_cdk import Duration
from aws_cdk import aws_dynamodb as dynamodb
from aws_cdk import aws_lambda as _lambda
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import Construct

# API Gateway (REST) の統合タイムアウトは 29 秒。
# ゲートウェイ呼び出しは 8 秒 x 3 回（初回 + リトライ 2 回）でその内側に収める。
GATEWAY_TIMEOUT_SECONDS = 8
GATEWAY_MAX_RETRIES = 2
FUNCTION_TIMEOUT = Duration.seconds(40)
# キャンセルロックのリースは関数のタイムアウトより長くする
CANCELLATION_LOCK_LEASE_SECONDS = 120


class Functions(Construct):
    """Lambda 関数を管理する Construct"""

    def __init__(
        self,
        scope: Construct,
        id: str,
        table: dynamodb.Table,
        common_layer: _lambda.LayerVersion,
        stripe_secret: secretsmanager.ISecret,
        coinbase_api_key: secretsmanager.ISecret,
        currency: str = "EUR",
    ) -> None:
        super().__init__(scope, id)

        self._table = table
        self._common_layer = common_layer
        self._base_environment = {
            "TABLE_NAME": table.table_name,
            "CURRENCY": currency,
            "STRIPE_SECRET_ARN": stripe_secret.secret_arn,
            "COINBASE_API_KEY_ARN": coinbase_api_key.secret_arn,
            "GATEWAY_TIMEOUT_SECONDS": str(GATEWAY_TIMEOUT_SECONDS),
            "GATEWAY_MAX_RETRIES": str(GATEWAY_MAX_RETRIES),
            "CANCELLATION_LOCK_LEASE_SECONDS": str(CANCELLATION_LOCK_LEASE_SECONDS),
            "CRYPTO_POLL_INTERVAL_SECONDS": "10",
        }

        self.cancel_booking = self._create_function(
            "CancelBookingLambda",
            "services.booking.handlers.cancel.lambda_handler",
            "booking-service",
        )

        self.get_booking = self._create_function(
            "GetBookingLambda",
            "services.booking.handlers.get_booking.lambda_handler",
            "booking-service",
        )

        self.confirm_payment = self._create_function(
            "ConfirmPaymentLambda",
            "services.payment.handlers.confirm.lambda_handler",
            "payment-service",
        )

        self.create_crypto_charge = self._create_function(
            "CreateCryptoChargeLambda",
            "services.payment.handlers.create_crypto_charge.lambda_handler",
            "payment-service",
        )

        self.check_crypto_charge = self._create_function(
            "CheckCryptoChargeLambda",
            "services.payment.handlers.check_crypto_charge.lambda_handler",
            "payment-service",
        )

        for fn in [
            self.cancel_booking,
            self.confirm_payment,
            self.create_crypto_charge,
            self.check_crypto_charge,
        ]:
            table.grant_read_write_data(fn)

        table.grant_read_data(self.get_booking)

        stripe_secret.grant_read(self.cancel_booking)
        stripe_secret.grant_read(self.confirm_payment)
        coinbase_api_key.grant_read(self.create_crypto_charge)
        coinbase_api_key.grant_read(self.check_crypto_charge)

    @property
    def all_functions(self) -> list[_lambda.Function]:
        return [
            self.cancel_booking,
            self.get_booking,
            self.confirm_payment,
            self.create_crypto_charge,
            self.check_crypto_charge,
        ]

    def _create_function(
        self,
        id: str,
        handler: str,
        service_name: str,
    ) -> _lambda.Function:
        return _lambda.Function(
            self,
            id,
            runtime=_lambda.Runtime.PYTHON_3_14,
            handler=handler,
            code=_lambda.Code.from_asset("src"),
            layers=[self._common_layer],
            timeout=FUNCTION_TIMEOUT,
            environment={
                **self._base_environment,
                "POWERTOOLS_SERVICE_NAME": service_name,
                "DEPLOY_TIME": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            },
        )
