from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from services.shared.domain import IsoDateTime, Money


class ChargeStatus(str, Enum):
    """暗号資産チャージのステータス（timeline の最新値）"""

    NEW = "NEW"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    CANCELED = "CANCELED"
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ChargeStatus.COMPLETED,
            ChargeStatus.RESOLVED,
            ChargeStatus.EXPIRED,
            ChargeStatus.CANCELED,
        )

    @property
    def is_paid(self) -> bool:
        return self in (ChargeStatus.COMPLETED, ChargeStatus.RESOLVED)


@dataclass(frozen=True)
class ChargeRequest:
    """チャージ作成リクエスト"""

    name: str
    description: str
    amount: Money
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Charge:
    """チャージ"""

    id: str
    status: ChargeStatus
    hosted_url: str | None = None
    expires_at: IsoDateTime | None = None
    network: str | None = None
    transaction_hash: str | None = None


class CryptoChargeGateway(ABC):
    """暗号資産決済ゲートウェイのポート"""

    @abstractmethod
    def create_charge(self, request: ChargeRequest) -> Charge:
        """チャージを作成する"""
        raise NotImplementedError

    @abstractmethod
    def retrieve_charge(self, charge_id: str) -> Charge:
        """チャージの現在の状態を取得する"""
        raise NotImplementedError
