from aws_cdk import aws_apigateway as apigw
from aws_cdk import aws_lambda as _lambda
from constructs import Construct


class Api(Construct):
    """API Gateway Construct"""

    def __init__(
        self,
        scope: Construct,
        id: str,
        cancel_booking: _lambda.Function,
        get_booking: _lambda.Function,
        confirm_payment: _lambda.Function,
        create_crypto_charge: _lambda.Function,
        check_crypto_charge: _lambda.Function,
    ) -> None:
        super().__init__(scope, id)

        self.rest_api = apigw.RestApi(
            self,
            "BookingRestApi",
            rest_api_name="Bricollano Booking API",
            deploy_options=apigw.StageOptions(
                stage_name="prod",
                throttling_burst_limit=10,
                throttling_rate_limit=5,
            ),
        )

        # GET /bookings/{booking_id} -> Lambda (get_booking)
        bookings_resource = self.rest_api.root.add_resource("bookings")
        booking_resource = bookings_resource.add_resource("{booking_id}")
        booking_resource.add_method("GET", apigw.LambdaIntegration(get_booking))

        # POST /bookings/{booking_id}/cancel -> Lambda (cancel_booking)
        booking_resource.add_resource("cancel").add_method(
            "POST", apigw.LambdaIntegration(cancel_booking)
        )

        # POST /payments/confirm -> Lambda (confirm_payment)
        payments_resource = self.rest_api.root.add_resource("payments")
        payments_resource.add_resource("confirm").add_method(
            "POST", apigw.LambdaIntegration(confirm_payment)
        )

        # POST /payments/crypto -> Lambda (create_crypto_charge)
        crypto_resource = payments_resource.add_resource("crypto")
        crypto_resource.add_method(
            "POST", apigw.LambdaIntegration(create_crypto_charge)
        )

        # GET /payments/crypto/{charge_id} -> Lambda (check_crypto_charge)
        crypto_resource.add_resource("{charge_id}").add_method(
            "GET", apigw.LambdaIntegration(check_crypto_charge)
        )
