from __future__ import annotations

from pydantic import BaseModel

from services.booking.applications.cancel_booking import CancellationResult
from services.booking.applications.get_booking import BookingDetails
from services.payment.domain.entity import Payment
from services.shared.domain import Money


class RefundData(BaseModel):
    """返金内訳のレスポンスモデル（モバイルクライアント向けに camelCase）"""

    refundId: str
    refundAmount: float
    cancellationFee: float


class CancelBookingResponse(BaseModel):
    """予約キャンセルのレスポンスモデル"""

    success: bool
    message: str
    refund: RefundData | None = None


class PaymentData(BaseModel):
    """決済データのレスポンスモデル"""

    payment_id: str
    method: str
    amount: str
    currency: str
    status: str
    transaction_id: str | None
    metadata: dict


class BookingData(BaseModel):
    """予約データのレスポンスモデル"""

    booking_id: str
    client_id: str
    worker_id: str
    service_id: str
    scheduled_date: str
    start_time: str
    end_time: str
    address: str
    total_amount: str
    currency: str
    status: str
    cancellation_reason: str | None
    cancelled_at: str | None
    payments: list[PaymentData]


class SuccessResponse(BaseModel):
    """成功レスポンスモデル"""

    status: str = "success"
    data: BookingData


def _amount(money: Money) -> float:
    return float(money.round2().amount)


def refund_data(refund_id: str, refund_amount: Money, fee: Money) -> dict:
    """返金内訳を camelCase の辞書に変換する"""
    return RefundData(
        refundId=refund_id,
        refundAmount=_amount(refund_amount),
        cancellationFee=_amount(fee),
    ).model_dump()


def to_cancel_response(result: CancellationResult) -> dict:
    """CancellationResult をレスポンス辞書に変換する"""
    refund = None
    if result.refund is not None:
        refund = RefundData(
            refundId=result.refund.refund_id,
            refundAmount=_amount(result.refund.refund_amount),
            cancellationFee=_amount(result.refund.cancellation_fee),
        )
    return CancelBookingResponse(
        success=True,
        message=result.message,
        refund=refund,
    ).model_dump()


def _to_payment_data(payment: Payment) -> PaymentData:
    return PaymentData(
        payment_id=str(payment.id),
        method=payment.method.value,
        amount=str(payment.amount.amount),
        currency=str(payment.amount.currency),
        status=payment.status.value,
        transaction_id=payment.transaction_id,
        metadata=payment.metadata,
    )


def to_booking_response(details: BookingDetails) -> dict:
    """予約と決済をレスポンス辞書に変換する"""
    booking = details.booking
    return SuccessResponse(
        data=BookingData(
            booking_id=str(booking.id),
            client_id=booking.client_id,
            worker_id=booking.worker_id,
            service_id=booking.service_id,
            scheduled_date=booking.schedule.scheduled_date,
            start_time=booking.schedule.start_time,
            end_time=booking.schedule.end_time,
            address=booking.address,
            total_amount=str(booking.total_amount.amount),
            currency=str(booking.total_amount.currency),
            status=booking.status.value,
            cancellation_reason=booking.cancellation_reason,
            cancelled_at=str(booking.cancelled_at) if booking.cancelled_at else None,
            payments=[_to_payment_data(p) for p in details.payments],
        )
    ).model_dump()
