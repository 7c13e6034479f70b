from .crypto_charge_gateway import Charge as Charge
from .crypto_charge_gateway import ChargeRequest as ChargeRequest
from .crypto_charge_gateway import ChargeStatus as ChargeStatus
from .crypto_charge_gateway import CryptoChargeGateway as CryptoChargeGateway
from .payment_gateway import PaymentGateway as PaymentGateway
from .payment_gateway import PaymentIntentSnapshot as PaymentIntentSnapshot
from .payment_gateway import RefundRequest as RefundRequest
from .payment_gateway import RefundResult as RefundResult
from .payment_gateway import RefundStatus as RefundStatus
