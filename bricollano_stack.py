from aws_cdk import CfnOutput, Stack
from constructs import Construct

from infra.constructs import Api, Database, Functions, Layers, Secrets


class BricollanoStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        database = Database(self, "Database")
        secrets = Secrets(self, "Secrets")
        layers = Layers(self, "Layers")

        fns = Functions(
            self,
            "Functions",
            table=database.table,
            common_layer=layers.common_layer,
            stripe_secret=secrets.stripe_secret,
            coinbase_api_key=secrets.coinbase_api_key,
        )

        api = Api(
            self,
            "Api",
            cancel_booking=fns.cancel_booking,
            get_booking=fns.get_booking,
            confirm_payment=fns.confirm_payment,
            create_crypto_charge=fns.create_crypto_charge,
            check_crypto_charge=fns.check_crypto_charge,
        )

        CfnOutput(self, "ApiUrl", value=api.rest_api.url)
        CfnOutput(self, "TableName", value=database.table.table_name)
