from enum import Enum


class PaymentStatus(str, Enum):
    """決済ステータス"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
