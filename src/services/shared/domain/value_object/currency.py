from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Currency:
    """通貨コード（ISO 4217）

    サポート対象: EUR, USD
    """

    SUPPORTED: ClassVar[frozenset[str]] = frozenset({"EUR", "USD"})
    SYMBOLS: ClassVar[dict[str, str]] = {"EUR": "€", "USD": "$"}

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper()
        if normalized not in self.SUPPORTED:
            raise ValueError(
                f"Unsupported currency: {self.code}. "
                f"Supported: {', '.join(sorted(self.SUPPORTED))}"
            )
        object.__setattr__(self, "code", normalized)

    def __str__(self) -> str:
        return self.code

    @property
    def symbol(self) -> str:
        return self.SYMBOLS[self.code]

    @classmethod
    def eur(cls) -> Currency:
        """ユーロ（デフォルト通貨）"""
        return cls("EUR")

    @classmethod
    def usd(cls) -> Currency:
        """米ドル"""
        return cls("USD")
