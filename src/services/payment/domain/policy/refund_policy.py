from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from services.shared.domain import Money
from services.shared.domain.exception import InvalidAmountException

REFUND_RATE = Decimal("0.80")
FEE_RATE = Decimal("0.20")


@dataclass(frozen=True)
class RefundSplit:
    """キャンセル時の返金額と手数料の内訳"""

    refund_amount: Money
    retained_fee: Money

    @property
    def total(self) -> Money:
        return self.refund_amount.add(self.retained_fee)

    @property
    def refund_percentage(self) -> int:
        return int(REFUND_RATE * 100)


def compute_refund_split(total_amount: Money) -> RefundSplit:
    """支払総額を 80% 返金 / 20% 手数料に分割する

    それぞれ独立に小数第2位で四捨五入する。
    入力が小数第2位までの金額なら、両者の和は必ず元の総額に一致する。
    """
    amount = total_amount.amount
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountException(
            f"Refund total must be a positive finite amount: {amount}"
        )

    return RefundSplit(
        refund_amount=total_amount.multiply(REFUND_RATE).round2(),
        retained_fee=total_amount.multiply(FEE_RATE).round2(),
    )
