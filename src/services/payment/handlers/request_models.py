from pydantic import BaseModel, Field


class ConfirmPaymentRequest(BaseModel):
    """カード決済確定リクエストモデル"""

    payment_intent_id: str = Field(..., min_length=1, pattern=r"^pi_")
    booking_id: str = Field(..., min_length=1)
    payer_id: str = Field(..., min_length=1)


class CreateCryptoChargeRequest(BaseModel):
    """暗号資産チャージ作成リクエストモデル"""

    booking_id: str = Field(..., min_length=1)
    payer_id: str = Field(..., min_length=1)
    description: str | None = Field(default=None, max_length=200)
