from aws_cdk import RemovalPolicy
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import Construct


class Secrets(Construct):
    """決済ゲートウェイの API キーを保持する Secrets Manager Construct

    値はデプロイ後にコンソールまたは CLI で設定する。
    """

    def __init__(self, scope: Construct, id: str) -> None:
        super().__init__(scope, id)

        self.stripe_secret = secretsmanager.Secret(
            self,
            "StripeSecretKey",
            secret_name="/bricollano/stripe-secret-key",
            description="Stripe secret key used for payment confirmation and refunds",
            removal_policy=RemovalPolicy.RETAIN,
        )

        self.coinbase_api_key = secretsmanager.Secret(
            self,
            "CoinbaseApiKey",
            secret_name="/bricollano/coinbase-commerce-api-key",
            description="Coinbase Commerce API key used for crypto charges",
            removal_policy=RemovalPolicy.RETAIN,
        )
