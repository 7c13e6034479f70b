from .payment_factory import CryptoPaymentDetails as CryptoPaymentDetails
from .payment_factory import PaymentFactory as PaymentFactory
