from typing import Any


class DomainException(Exception):
    """ドメイン層で発生する基底例外"""

    code = "DOMAIN_ERROR"


class ResourceNotFoundException(DomainException):
    """リソースが見つからない場合"""

    code = "NOT_FOUND"


class UnauthorizedException(DomainException):
    """操作者に権限がない場合（予約の当事者ではない）"""

    code = "UNAUTHORIZED"


class BusinessRuleViolationException(DomainException):
    """ビジネスルールに違反した場合"""

    code = "BUSINESS_RULE_VIOLATION"


class NotCancellableException(BusinessRuleViolationException):
    """キャンセルできない状態の予約、または同時キャンセルの競合に負けた場合"""

    code = "NOT_CANCELLABLE"


class InvalidAmountException(DomainException, ValueError):
    """金額が 0 以下、または有限値でない場合"""

    code = "INVALID_AMOUNT"


class DuplicateResourceException(DomainException):
    """リソースの重複エラー（条件付き書き込みの失敗時）"""

    code = "DUPLICATE_RESOURCE"


class OptimisticLockException(DomainException):
    """楽観ロックの競合エラー（ステータスが期待値と異なる場合）"""

    code = "CONFLICT"


class GatewayException(DomainException):
    """決済ゲートウェイ呼び出しの基底例外"""

    code = "GATEWAY_ERROR"
    retryable = False

    def __init__(self, message: str, gateway_code: str | None = None) -> None:
        super().__init__(message)
        self.gateway_code = gateway_code


class GatewayTransientException(GatewayException):
    """タイムアウト・通信エラー等の一時的な失敗

    同じ冪等性キーで再試行すれば二重返金にはならない。
    """

    code = "GATEWAY_TRANSIENT"
    retryable = True


class GatewayRejectedException(GatewayException):
    """ゲートウェイが拒否した（返金済み・金額超過・PaymentIntent 不明など）"""

    code = "GATEWAY_REJECTED"


class PersistenceFailedException(DomainException):
    """返金成功後にローカルの記録（台帳・ステータス）に失敗した場合

    資金は既に移動しているため自動リトライせず、手動の突き合わせ対象とする。
    """

    code = "PERSISTENCE_FAILED"

    def __init__(
        self,
        message: str,
        booking_id: str | None = None,
        refund: Any = None,
        split: Any = None,
    ) -> None:
        super().__init__(message)
        self.booking_id = booking_id
        self.refund = refund
        self.split = split
