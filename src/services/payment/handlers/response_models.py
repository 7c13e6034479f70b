from __future__ import annotations

from pydantic import BaseModel

from services.payment.applications.create_crypto_charge import CryptoChargeResult
from services.payment.applications.poll_crypto_charge import PollResult
from services.payment.domain.entity.payment import Payment


class PaymentData(BaseModel):
    """決済データのレスポンスモデル"""

    payment_id: str
    booking_id: str
    method: str
    amount: str
    currency: str
    status: str
    transaction_id: str | None


class CryptoChargeData(BaseModel):
    """暗号資産チャージのレスポンスモデル"""

    charge_id: str
    payment_id: str
    hosted_url: str | None
    expires_at: str | None
    status: str


class ChargeStatusData(BaseModel):
    """チャージ状態確認のレスポンスモデル"""

    charge_id: str
    status: str
    next_poll_at: str | None


class SuccessResponse(BaseModel):
    """成功レスポンスモデル"""

    status: str = "success"
    data: PaymentData | CryptoChargeData | ChargeStatusData


def to_response(payment: Payment) -> dict:
    """Payment エンティティをレスポンス辞書に変換する"""
    return SuccessResponse(
        data=PaymentData(
            payment_id=str(payment.id),
            booking_id=str(payment.booking_id),
            method=payment.method.value,
            amount=str(payment.amount.amount),
            currency=str(payment.amount.currency),
            status=payment.status.value,
            transaction_id=payment.transaction_id,
        )
    ).model_dump()


def to_charge_response(result: CryptoChargeResult) -> dict:
    charge = result.charge
    return SuccessResponse(
        data=CryptoChargeData(
            charge_id=charge.id,
            payment_id=str(result.payment.id),
            hosted_url=charge.hosted_url,
            expires_at=str(charge.expires_at) if charge.expires_at else None,
            status=charge.status.value,
        )
    ).model_dump()


def to_status_response(charge_id: str, result: PollResult) -> dict:
    return SuccessResponse(
        data=ChargeStatusData(
            charge_id=charge_id,
            status=result.status.value,
            next_poll_at=str(result.next_poll_at) if result.next_poll_at else None,
        )
    ).model_dump()
