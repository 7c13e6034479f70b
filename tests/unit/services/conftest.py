import json
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from services.booking.domain import (
    Booking,
    BookingId,
    BookingRepository,
    BookingStatus,
    ScheduledWindow,
)
from services.payment.domain import (
    Payment,
    PaymentMethod,
    PaymentRepository,
    PaymentStatus,
)
from services.payment.domain.gateway import (
    Charge,
    ChargeRequest,
    ChargeStatus,
    CryptoChargeGateway,
    PaymentGateway,
    PaymentIntentSnapshot,
    RefundRequest,
    RefundResult,
    RefundStatus,
)
from services.payment.domain.value_object import PaymentId
from services.shared.domain import DuplicateResourceException, IsoDateTime, Money
from services.shared.domain.exception import (
    NotCancellableException,
    OptimisticLockException,
    PersistenceFailedException,
)

CLIENT_ID = "client-1"
WORKER_ID = "worker-1"
PAYMENT_INTENT_ID = "pi_123"


def _copy_booking(booking: Booking) -> Booking:
    return Booking(
        id=booking.id,
        client_id=booking.client_id,
        worker_id=booking.worker_id,
        service_id=booking.service_id,
        schedule=booking.schedule,
        address=booking.address,
        total_amount=booking.total_amount,
        status=booking.status,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        cancellation_reason=booking.cancellation_reason,
        cancelled_at=booking.cancelled_at,
    )


def _copy_payment(payment: Payment) -> Payment:
    return Payment(
        id=payment.id,
        booking_id=payment.booking_id,
        payer_id=payment.payer_id,
        method=payment.method,
        amount=payment.amount,
        status=payment.status,
        transaction_id=payment.transaction_id,
        metadata=payment.metadata,
        created_at=payment.created_at,
    )


class InMemoryPaymentRepository(PaymentRepository):
    """条件付き書き込みを再現するインメモリ実装"""

    def __init__(self) -> None:
        self.rows: dict[str, Payment] = {}

    def save(self, payment: Payment) -> None:
        if str(payment.id) in self.rows:
            raise DuplicateResourceException(f"Payment already exists: {payment.id}")
        self.rows[str(payment.id)] = _copy_payment(payment)

    def find_by_id(self, payment_id: PaymentId) -> Payment | None:
        payment = self.rows.get(str(payment_id))
        return _copy_payment(payment) if payment else None

    def find_by_booking_id(self, booking_id: BookingId) -> list[Payment]:
        return [
            _copy_payment(payment)
            for payment in self.rows.values()
            if payment.booking_id == booking_id
        ]

    def find_by_transaction_id(self, transaction_id: str) -> Payment | None:
        for payment in self.rows.values():
            if payment.transaction_id == transaction_id and payment.method.is_primary:
                return _copy_payment(payment)
        return None

    def update(self, payment: Payment, expected_status: PaymentStatus) -> None:
        stored = self.rows.get(str(payment.id))
        if stored is None or stored.status != expected_status:
            raise OptimisticLockException(f"Payment status conflict: {payment.id}")
        self.rows[str(payment.id)] = _copy_payment(payment)

    def fees(self) -> list[Payment]:
        return [
            payment
            for payment in self.rows.values()
            if payment.method == PaymentMethod.CANCELLATION_FEE
        ]


class InMemoryBookingRepository(BookingRepository):
    """キャンセルロックとトランザクションを再現するインメモリ実装"""

    def __init__(self, payments: InMemoryPaymentRepository) -> None:
        self.rows: dict[str, Booking] = {}
        self.locks: dict[str, str] = {}
        self.lock_expires_at: dict[str, IsoDateTime] = {}
        self.fail_release = False
        self.payments = payments
        self.fail_commit = False

    def save(self, booking: Booking) -> None:
        if str(booking.id) in self.rows:
            raise DuplicateResourceException(f"Booking already exists: {booking.id}")
        self.rows[str(booking.id)] = _copy_booking(booking)

    def find_by_id(self, booking_id: BookingId) -> Booking | None:
        booking = self.rows.get(str(booking_id))
        return _copy_booking(booking) if booking else None

    def update_status(self, booking: Booking, expected_status: BookingStatus) -> None:
        stored = self.rows.get(str(booking.id))
        if stored is None or stored.status != expected_status:
            raise OptimisticLockException(f"Booking status conflict: {booking.id}")
        self.rows[str(booking.id)] = _copy_booking(booking)

    def acquire_cancellation_lock(
        self,
        booking_id: BookingId,
        token: str,
        now: IsoDateTime,
        expires_at: IsoDateTime,
    ) -> None:
        key = str(booking_id)
        stored = self.rows.get(key)
        held = key in self.locks and not self.lock_expires_at[key].is_before(now)
        if stored is None or not stored.status.is_cancellable or held:
            raise NotCancellableException(f"Booking {booking_id} is not cancellable")
        self.locks[key] = token
        self.lock_expires_at[key] = expires_at

    def release_cancellation_lock(self, booking_id: BookingId, token: str) -> None:
        if self.fail_release:
            raise RuntimeError("release failed")
        if self.locks.get(str(booking_id)) != token:
            raise OptimisticLockException("Cancellation lock is not held")
        del self.locks[str(booking_id)]
        del self.lock_expires_at[str(booking_id)]

    def commit_cancellation(
        self,
        booking: Booking,
        cancellation_fee: Payment | None,
        lock_token: str | None,
    ) -> None:
        key = str(booking.id)
        stored = self.rows[key]
        lock_ok = self.locks.get(key) == lock_token
        fee_ok = cancellation_fee is None or str(cancellation_fee.id) not in (
            self.payments.rows
        )
        ok = stored.status.is_cancellable and lock_ok and fee_ok
        if cancellation_fee is None:
            if not ok:
                raise NotCancellableException(f"Booking {booking.id} not cancellable")
        elif self.fail_commit or not ok:
            raise PersistenceFailedException(
                "TransactionCanceledException", booking_id=key
            )

        if cancellation_fee is not None:
            self.payments.rows[str(cancellation_fee.id)] = _copy_payment(
                cancellation_fee
            )
        self.rows[key] = _copy_booking(booking)
        self.locks.pop(key, None)
        self.lock_expires_at.pop(key, None)


class FakeCardGateway(PaymentGateway):
    """冪等性キーで返金を重複排除するカードゲートウェイ"""

    def __init__(self) -> None:
        self.calls: list[RefundRequest] = []
        self.refunds: dict[str, RefundResult] = {}
        self.errors: list[Exception] = []
        self.intents: dict[str, PaymentIntentSnapshot] = {}
        self.on_refund = None

    def issue_refund(self, request: RefundRequest) -> RefundResult:
        self.calls.append(request)
        if self.on_refund is not None:
            hook, self.on_refund = self.on_refund, None
            hook()
        if self.errors:
            raise self.errors.pop(0)
        if request.idempotency_key not in self.refunds:
            self.refunds[request.idempotency_key] = RefundResult(
                refund_id=f"re_{len(self.refunds) + 1}",
                status=RefundStatus.SUCCEEDED,
                amount=request.amount,
            )
        return self.refunds[request.idempotency_key]

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentSnapshot:
        return self.intents[payment_intent_id]


class FakeCryptoGateway(CryptoChargeGateway):
    def __init__(self) -> None:
        self.requests: list[ChargeRequest] = []
        self.charges: dict[str, Charge] = {}
        self.errors: list[Exception] = []

    def create_charge(self, request: ChargeRequest) -> Charge:
        self.requests.append(request)
        charge = Charge(
            id=f"charge-{len(self.charges) + 1}",
            status=ChargeStatus.NEW,
            hosted_url="https://commerce.coinbase.com/pay/abc",
        )
        self.charges[charge.id] = charge
        return charge

    def retrieve_charge(self, charge_id: str) -> Charge:
        if self.errors:
            raise self.errors.pop(0)
        return self.charges[charge_id]

    def set_status(self, charge_id: str, status: ChargeStatus, **fields) -> None:
        self.charges[charge_id] = Charge(id=charge_id, status=status, **fields)


@pytest.fixture
def booking_id():
    """全テスト共通の BookingId フィクスチャ"""
    return BookingId(value="booking-123")


@pytest.fixture
def mock_repository():
    """リポジトリのモックフィクスチャ"""
    return MagicMock()


@pytest.fixture
def create_booking(booking_id):
    """Booking を生成する Factory fixture（Factories as fixtures パターン）"""

    def _factory(
        status: BookingStatus = BookingStatus.CONFIRMED,
        total: str = "100.00",
        id: BookingId = booking_id,
    ) -> Booking:
        return Booking(
            id=id,
            client_id=CLIENT_ID,
            worker_id=WORKER_ID,
            service_id="service-plumbing",
            schedule=ScheduledWindow(
                scheduled_date="2026-11-02",
                start_time="09:00",
                end_time="11:30",
            ),
            address="Via Roma 1, Milano",
            total_amount=Money.eur(total),
            status=status,
        )

    return _factory


@pytest.fixture
def create_payment(booking_id):
    """Payment を生成する Factory fixture"""

    def _factory(
        method: PaymentMethod = PaymentMethod.CREDIT_CARD,
        status: PaymentStatus = PaymentStatus.COMPLETED,
        amount: str = "100.00",
        transaction_id: str | None = PAYMENT_INTENT_ID,
        payment_id: str = "payment-1",
        id: BookingId = booking_id,
    ) -> Payment:
        return Payment(
            id=PaymentId(value=payment_id),
            booking_id=id,
            payer_id=CLIENT_ID,
            method=method,
            amount=Money.eur(amount),
            status=status,
            transaction_id=transaction_id,
        )

    return _factory


@pytest.fixture
def payment_repository():
    return InMemoryPaymentRepository()


@pytest.fixture
def booking_repository(payment_repository):
    return InMemoryBookingRepository(payment_repository)


@pytest.fixture
def card_gateway():
    return FakeCardGateway()


@pytest.fixture
def crypto_gateway():
    return FakeCryptoGateway()


@pytest.fixture
def captured_intent():
    return PaymentIntentSnapshot(
        id=PAYMENT_INTENT_ID,
        status="succeeded",
        amount=Money.eur("100.00"),
        payment_method="pm_card_visa",
    )


@dataclass
class FakeLambdaContext:
    function_name: str = "test-function"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:eu-south-1:123456789012:function:test"
    aws_request_id: str = "request-1"


@pytest.fixture
def lambda_context():
    return FakeLambdaContext()


@pytest.fixture
def api_event():
    """API Gateway (REST) のプロキシイベントを生成する Factory fixture"""

    def _factory(
        path_parameters: dict | None = None,
        body: dict | None = None,
        query: dict | None = None,
        method: str = "POST",
    ) -> dict:
        return {
            "resource": "/",
            "path": "/",
            "httpMethod": method,
            "headers": {"Content-Type": "application/json"},
            "pathParameters": path_parameters,
            "queryStringParameters": query,
            "requestContext": {"requestId": "req-1", "stage": "prod"},
            "body": json.dumps(body) if body is not None else None,
            "isBase64Encoded": False,
        }

    return _factory
