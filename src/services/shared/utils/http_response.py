import json

from services.shared.domain import DomainException
from services.shared.domain.exception import (
    GatewayException,
    PersistenceFailedException,
)

# ドメイン例外コード -> HTTP ステータス
_STATUS_BY_CODE: dict[str, int] = {
    "NOT_FOUND": 404,
    "UNAUTHORIZED": 403,
    "NOT_CANCELLABLE": 409,
    "CONFLICT": 409,
    "DUPLICATE_RESOURCE": 409,
    "BUSINESS_RULE_VIOLATION": 409,
    "INVALID_AMOUNT": 400,
    "GATEWAY_REJECTED": 402,
    "GATEWAY_TRANSIENT": 503,
    "PERSISTENCE_FAILED": 500,
}


def api_response(status_code: int, body: dict) -> dict:
    """API Gateway Lambda Proxy Integration のレスポンス形式を生成する"""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def error_response(error: DomainException, extra: dict | None = None) -> dict:
    """ドメイン例外を API レスポンスに変換する（変換はここに集約する）"""
    body: dict = {
        "success": False,
        "error_code": error.code,
        "message": str(error),
    }
    if isinstance(error, GatewayException):
        body["retryable"] = error.retryable
    if isinstance(error, PersistenceFailedException):
        body["reconciliation_required"] = True
    if extra:
        body.update(extra)
    return api_response(_STATUS_BY_CODE.get(error.code, 400), body)


def validation_error_response(message: str) -> dict:
    """リクエストのバリデーションエラー"""
    return api_response(
        400,
        {"success": False, "error_code": "VALIDATION_ERROR", "message": message},
    )
