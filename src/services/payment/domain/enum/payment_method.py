from enum import Enum


class PaymentMethod(str, Enum):
    """決済手段

    cancellation_fee はキャンセル時に差し引いた手数料の台帳行。
    """

    CREDIT_CARD = "credit_card"
    CRYPTO = "crypto"
    CANCELLATION_FEE = "cancellation_fee"

    @property
    def is_primary(self) -> bool:
        """予約代金そのものの決済かどうか"""
        return self in (PaymentMethod.CREDIT_CARD, PaymentMethod.CRYPTO)
