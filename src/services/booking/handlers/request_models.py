from pydantic import BaseModel, Field, field_validator


class CancelBookingRequest(BaseModel):
    """予約キャンセルリクエストモデル"""

    user_id: str = Field(..., min_length=1, description="キャンセルを要求する利用者")
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def blank_reason_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


class GetBookingRequest(BaseModel):
    """予約詳細取得リクエストモデル"""

    user_id: str = Field(..., min_length=1)
