from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from services.shared.domain.exception import InvalidAmountException
from services.shared.utils.validators import to_decimal

from .currency import Currency

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Money:
    """金額（通貨情報含む）

    金額は 0 以上の有限な Decimal。端数処理は明示的に round2() で行う。
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount)
        if not amount.is_finite():
            raise InvalidAmountException(f"Amount must be finite: {self.amount}")
        if amount < 0:
            raise InvalidAmountException("Amount cannot be negative")
        object.__setattr__(self, "amount", amount)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def display(self) -> str:
        """通貨記号付きの表示文字列（末尾の 0 は省略: €80, €80.5）"""
        normalized = self.amount.normalize()
        return f"{self.currency.symbol}{normalized:f}"

    def is_positive(self) -> bool:
        return self.amount > 0

    def add(self, other: Money) -> Money:
        """金額を加算する"""
        self._ensure_same_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def subtract(self, other: Money) -> Money:
        """金額を減算する（結果が負になる場合は例外）"""
        self._ensure_same_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def multiply(self, rate: Decimal) -> Money:
        """金額に係数を掛ける（端数処理はしない）"""
        return Money(amount=self.amount * rate, currency=self.currency)

    def round2(self) -> Money:
        """小数第2位で四捨五入（ROUND_HALF_UP）"""
        return Money(
            amount=self.amount.quantize(CENT, rounding=ROUND_HALF_UP),
            currency=self.currency,
        )

    def to_minor_units(self) -> int:
        """最小通貨単位（セント）に変換する"""
        return int(self.round2().amount * 100)

    def _ensure_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValueError("Cannot combine money with different currencies")

    @classmethod
    def from_minor_units(cls, minor_units: int, currency: Currency) -> Money:
        """最小通貨単位（セント）から生成する"""
        return cls(amount=Decimal(minor_units) / 100, currency=currency)

    @classmethod
    def eur(cls, amount: Decimal | str | int) -> Money:
        """ユーロで Money を生成"""
        return cls(to_decimal(amount), Currency.eur())

    @classmethod
    def usd(cls, amount: Decimal | str | int) -> Money:
        """米ドルで Money を生成"""
        return cls(to_decimal(amount), Currency.usd())
