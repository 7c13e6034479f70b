from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from services.booking.domain.value_object import BookingId
from services.shared.domain import Money


class RefundStatus(str, Enum):
    """ゲートウェイ側の返金ステータス"""

    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True)
class RefundRequest:
    """返金リクエスト"""

    booking_id: BookingId
    payment_intent_id: str
    amount: Money
    reason: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def idempotency_key(self) -> str:
        """(予約ID, PaymentIntent ID) から決定的に導出する冪等性キー

        タイムアウト後の再試行でも同じキーになるため、ゲートウェイ側で重複排除される。
        """
        digest = hashlib.sha256(
            f"{self.booking_id}:{self.payment_intent_id}".encode("utf-8")
        ).hexdigest()
        return f"refund-{digest[:32]}"


@dataclass(frozen=True)
class RefundResult:
    """返金結果（ゲートウェイ採番の返金IDが正）"""

    refund_id: str
    status: RefundStatus
    amount: Money


@dataclass(frozen=True)
class PaymentIntentSnapshot:
    """ゲートウェイ上の PaymentIntent の状態"""

    id: str
    status: str
    amount: Money
    payment_method: str | None = None

    @property
    def is_captured(self) -> bool:
        """決済が成立している（またはキャプチャ待ち）か"""
        return self.status in ("succeeded", "requires_capture")


class PaymentGateway(ABC):
    """カード決済ゲートウェイのポート"""

    @abstractmethod
    def issue_refund(self, request: RefundRequest) -> RefundResult:
        """返金を発行する

        Raises:
            GatewayTransientException: 通信エラー等（同じキーで再試行可）
            GatewayRejectedException: ゲートウェイが拒否（再試行不可）
        """
        raise NotImplementedError

    @abstractmethod
    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentSnapshot:
        """PaymentIntent を取得する"""
        raise NotImplementedError
