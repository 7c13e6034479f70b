from __future__ import annotations

import os
from dataclasses import dataclass

from aws_lambda_powertools.utilities import parameters

DEFAULT_COINBASE_API_BASE = "https://api.commerce.coinbase.com"


@dataclass(frozen=True)
class Settings:
    """Lambda の環境変数から読み込む設定値

    シークレットは ARN が指定されていれば Secrets Manager から取得し、
    なければ平文の環境変数（ローカル実行用）を使う。
    """

    table_name: str | None
    currency: str = "EUR"
    stripe_secret_arn: str | None = None
    stripe_secret_key: str | None = None
    stripe_api_base: str | None = None
    gateway_timeout_seconds: float = 8.0
    gateway_max_retries: int = 2
    coinbase_api_key_arn: str | None = None
    coinbase_api_key: str | None = None
    coinbase_api_base: str = DEFAULT_COINBASE_API_BASE
    crypto_poll_interval_seconds: float = 10.0
    cancellation_lock_lease_seconds: int = 120

    @classmethod
    def from_env(cls) -> Settings:
        """環境変数から設定を生成する"""
        return cls(
            table_name=os.getenv("TABLE_NAME"),
            currency=os.getenv("CURRENCY", "EUR").upper(),
            stripe_secret_arn=os.getenv("STRIPE_SECRET_ARN"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_api_base=os.getenv("STRIPE_API_BASE"),
            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "8")),
            gateway_max_retries=int(os.getenv("GATEWAY_MAX_RETRIES", "2")),
            coinbase_api_key_arn=os.getenv("COINBASE_API_KEY_ARN"),
            coinbase_api_key=os.getenv("COINBASE_API_KEY"),
            coinbase_api_base=os.getenv("COINBASE_API_BASE", DEFAULT_COINBASE_API_BASE),
            crypto_poll_interval_seconds=float(
                os.getenv("CRYPTO_POLL_INTERVAL_SECONDS", "10")
            ),
            cancellation_lock_lease_seconds=int(
                os.getenv("CANCELLATION_LOCK_LEASE_SECONDS", "120")
            ),
        )

    def resolve_stripe_secret_key(self) -> str:
        """Stripe のシークレットキーを取得する"""
        return _resolve_secret(
            self.stripe_secret_arn, self.stripe_secret_key, "Stripe secret key"
        )

    def resolve_coinbase_api_key(self) -> str:
        """Coinbase Commerce の API キーを取得する"""
        return _resolve_secret(
            self.coinbase_api_key_arn, self.coinbase_api_key, "Coinbase API key"
        )


def _resolve_secret(arn: str | None, plain: str | None, label: str) -> str:
    if arn:
        # max_age 秒の間は Powertools 側のキャッシュを使う
        return parameters.get_secret(arn, max_age=300)
    if plain:
        return plain
    raise RuntimeError(f"{label} not configured")
