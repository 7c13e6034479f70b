import httpx
from aws_lambda_powertools import Logger

from services.payment.domain.gateway import (
    Charge,
    ChargeRequest,
    ChargeStatus,
    CryptoChargeGateway,
)
from services.shared.domain import IsoDateTime
from services.shared.domain.exception import (
    GatewayRejectedException,
    GatewayTransientException,
)

logger = Logger(child=True)

API_VERSION = "2018-03-22"
# Coinbase は http(s) の絶対 URL のみ受け付ける
REDIRECT_URL = "https://www.bricollano.it/"
CANCEL_URL = "https://www.bricollano.it/payment-cancelled"


class CoinbaseCommerceClient(CryptoChargeGateway):
    """Coinbase Commerce API を使用した CryptoChargeGateway の具象実装"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.commerce.coinbase.com",
        timeout_seconds: float = 8.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.http = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "X-CC-Api-Key": api_key,
                "X-CC-Version": API_VERSION,
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def create_charge(self, request: ChargeRequest) -> Charge:
        """固定価格のチャージを作成する"""
        payload = {
            "name": request.name,
            "description": request.description,
            "pricing_type": "fixed_price",
            "local_price": {
                "amount": str(request.amount.round2().amount),
                "currency": str(request.amount.currency),
            },
            "metadata": request.metadata,
            "redirect_url": REDIRECT_URL,
            "cancel_url": CANCEL_URL,
        }
        data = self._send("POST", "/charges", json=payload)
        charge = _to_charge(data)
        logger.info(
            "Coinbase charge created",
            extra={"charge_id": charge.id, "metadata": request.metadata},
        )
        return charge

    def retrieve_charge(self, charge_id: str) -> Charge:
        """チャージを取得する"""
        return _to_charge(self._send("GET", f"/charges/{charge_id}"))

    def close(self) -> None:
        self.http.close()

    def _send(self, method: str, path: str, json: dict | None = None) -> dict:
        try:
            response = self.http.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise GatewayTransientException(f"Coinbase request timed out: {e}") from e
        except httpx.TransportError as e:
            raise GatewayTransientException(f"Coinbase request failed: {e}") from e

        body = _json_or_empty(response)
        if response.status_code == 429 or response.status_code >= 500:
            raise GatewayTransientException(
                _error_message(body, f"Coinbase returned {response.status_code}"),
                gateway_code=str(response.status_code),
            )
        if response.is_error:
            raise GatewayRejectedException(
                _error_message(
                    body, f"Coinbase rejected the request: {response.status_code}"
                ),
                gateway_code=str(response.status_code),
            )

        data = body.get("data")
        if not data:
            raise GatewayRejectedException("Invalid response from Coinbase Commerce")
        return data


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(body: dict, default: str) -> str:
    """error.message / errors[0].message の順でエラーメッセージを取り出す"""
    error = body.get("error") or {}
    if error.get("message"):
        return error["message"]
    errors = body.get("errors") or []
    if errors and errors[0].get("message"):
        return errors[0]["message"]
    return default


def _to_charge(data: dict) -> Charge:
    """API レスポンスの data を Charge に変換する"""
    timeline = data.get("timeline") or []
    status = ChargeStatus(timeline[-1]["status"]) if timeline else ChargeStatus.NEW
    payments = data.get("payments") or []
    expires_at = data.get("expires_at")
    return Charge(
        id=data["id"],
        status=status,
        hosted_url=data.get("hosted_url"),
        expires_at=IsoDateTime.from_string(expires_at) if expires_at else None,
        network=payments[0].get("network") if payments else None,
        transaction_hash=payments[0].get("transaction_id") if payments else None,
    )
