import threading
from unittest.mock import patch

import pytest

from services.booking.domain import BookingStatus
from services.payment.applications import check_crypto_charge
from services.payment.applications.check_crypto_charge import (
    CheckCryptoChargeService,
)
from services.payment.applications.create_crypto_charge import (
    CreateCryptoChargeService,
)
from services.payment.applications.poll_crypto_charge import ChargeStatusPoller
from services.payment.domain import PaymentFactory, PaymentMethod, PaymentStatus
from services.payment.domain.gateway import ChargeStatus
from services.shared.domain import IsoDateTime
from services.shared.domain.exception import (
    BusinessRuleViolationException,
    GatewayRejectedException,
    GatewayTransientException,
    UnauthorizedException,
)


@pytest.fixture
def create_service(booking_repository, payment_repository, crypto_gateway):
    return CreateCryptoChargeService(
        booking_repository=booking_repository,
        payment_repository=payment_repository,
        gateway=crypto_gateway,
        factory=PaymentFactory(),
    )


@pytest.fixture
def check_service(booking_repository, payment_repository, crypto_gateway):
    return CheckCryptoChargeService(
        booking_repository=booking_repository,
        payment_repository=payment_repository,
        gateway=crypto_gateway,
    )


@pytest.fixture
def pending_booking(booking_repository, create_booking):
    booking = create_booking(status=BookingStatus.PENDING, total="45.50")
    booking_repository.save(booking)
    return booking


@pytest.fixture
def charge(create_service, pending_booking):
    return create_service.create(pending_booking.id, "client-1").charge


class TestCreateCryptoChargeService:
    def test_creates_pending_payment_linked_to_charge(
        self, create_service, pending_booking, payment_repository, crypto_gateway
    ):
        result = create_service.create(pending_booking.id, "client-1", "Plumbing")

        request = crypto_gateway.requests[0]
        assert request.amount == pending_booking.total_amount
        assert request.metadata["booking_id"] == "booking-123"
        assert request.metadata["app_name"] == "BRICOLLANO"
        assert request.metadata["customer_id"] == "client-1"
        assert request.metadata["payment_id"] == str(result.payment.id)
        assert request.description == "Plumbing"

        stored = payment_repository.find_by_transaction_id(result.charge.id)
        assert stored.method == PaymentMethod.CRYPTO
        assert stored.status == PaymentStatus.PENDING
        assert stored.metadata["hosted_url"] == result.charge.hosted_url

    def test_only_client_can_pay(self, create_service, pending_booking):
        with pytest.raises(UnauthorizedException):
            create_service.create(pending_booking.id, "worker-1")

    def test_confirmed_booking_cannot_be_paid_again(
        self, create_service, booking_repository, create_booking
    ):
        booking_repository.save(create_booking(status=BookingStatus.CONFIRMED))

        with pytest.raises(BusinessRuleViolationException):
            create_service.create(create_booking().id, "client-1")


class TestCheckCryptoChargeService:
    def test_completed_charge_completes_payment_and_confirms_booking(
        self,
        check_service,
        charge,
        crypto_gateway,
        booking_repository,
        payment_repository,
        pending_booking,
    ):
        crypto_gateway.set_status(
            charge.id, ChargeStatus.COMPLETED, network="ethereum", transaction_hash="0xabc"
        )

        result = check_service.check(charge.id)

        assert result.status == ChargeStatus.COMPLETED
        payment = payment_repository.find_by_transaction_id(charge.id)
        assert payment.status == PaymentStatus.COMPLETED
        assert booking_repository.find_by_id(pending_booking.id).status == (
            BookingStatus.CONFIRMED
        )

    def test_completed_check_is_idempotent(
        self, check_service, charge, crypto_gateway, payment_repository
    ):
        crypto_gateway.set_status(charge.id, ChargeStatus.COMPLETED)

        check_service.check(charge.id)
        check_service.check(charge.id)

        payment = payment_repository.find_by_transaction_id(charge.id)
        assert payment.status == PaymentStatus.COMPLETED

    @pytest.mark.parametrize("status", [ChargeStatus.EXPIRED, ChargeStatus.CANCELED])
    def test_expired_or_canceled_charge_fails_payment(
        self,
        check_service,
        charge,
        crypto_gateway,
        booking_repository,
        payment_repository,
        pending_booking,
        status,
    ):
        crypto_gateway.set_status(charge.id, status)

        check_service.check(charge.id)

        payment = payment_repository.find_by_transaction_id(charge.id)
        assert payment.status == PaymentStatus.FAILED
        assert booking_repository.find_by_id(pending_booking.id).status == (
            BookingStatus.PENDING
        )

    def test_pending_charge_changes_nothing(
        self, check_service, charge, crypto_gateway, payment_repository
    ):
        crypto_gateway.set_status(charge.id, ChargeStatus.PENDING)

        check_service.check(charge.id)

        payment = payment_repository.find_by_transaction_id(charge.id)
        assert payment.status == PaymentStatus.PENDING

    def test_paid_after_cancellation_is_flagged_for_reconciliation(
        self,
        check_service,
        charge,
        crypto_gateway,
        booking_repository,
        payment_repository,
        pending_booking,
    ):
        """キャンセル済み予約への入金は確定せず、突き合わせ対象として記録する"""
        # Arrange
        booking = booking_repository.find_by_id(pending_booking.id)
        booking.cancel(cancelled_by="client-1", reason="Changed my mind")
        booking_repository.commit_cancellation(booking, None, None)
        crypto_gateway.set_status(charge.id, ChargeStatus.COMPLETED)

        # Act
        with patch.object(check_crypto_charge, "logger") as logger:
            check_service.check(charge.id)

        # Assert
        payment = payment_repository.find_by_transaction_id(charge.id)
        assert payment.status == PaymentStatus.COMPLETED
        assert booking_repository.find_by_id(pending_booking.id).status == (
            BookingStatus.CANCELLED
        )
        logger.warning.assert_called_once()
        extra = logger.warning.call_args.kwargs["extra"]
        assert extra["reconciliation_required"] is True
        assert extra["status"] == "cancelled"
        assert extra["charge_id"] == charge.id


class TestChargeStatusPoller:
    NOW = IsoDateTime.from_string("2026-10-19T10:00:00+00:00")

    def _poller(self, check_service, charge_id, interval=10.0):
        return ChargeStatusPoller(
            service=check_service,
            charge_id=charge_id,
            interval_seconds=interval,
            clock=lambda: self.NOW,
        )

    def test_poll_once_schedules_next_poll(self, check_service, charge):
        result = self._poller(check_service, charge.id).poll_once()

        assert result.status == ChargeStatus.NEW
        assert not result.done
        assert str(result.next_poll_at) == "2026-10-19T10:00:10+00:00"

    def test_terminal_status_stops_polling(self, check_service, charge, crypto_gateway):
        crypto_gateway.set_status(charge.id, ChargeStatus.EXPIRED)

        result = self._poller(check_service, charge.id).poll_once()

        assert result.done
        assert result.next_poll_at is None

    def test_transient_error_keeps_polling(self, check_service, charge, crypto_gateway):
        crypto_gateway.errors.append(GatewayTransientException("timeout"))

        result = self._poller(check_service, charge.id).poll_once()

        assert not result.done
        assert result.status == ChargeStatus.NEW

    def test_rejected_error_propagates(self, check_service, charge, crypto_gateway):
        crypto_gateway.errors.append(GatewayRejectedException("Not found"))

        with pytest.raises(GatewayRejectedException):
            self._poller(check_service, charge.id).poll_once()

    def test_run_until_terminal(self, check_service, charge, crypto_gateway):
        updates = []

        def on_update(result):
            updates.append(result.status)
            if len(updates) == 2:
                crypto_gateway.set_status(charge.id, ChargeStatus.COMPLETED)

        final = self._poller(check_service, charge.id, interval=0).run(
            threading.Event(), on_update
        )

        assert final.status == ChargeStatus.COMPLETED
        assert updates == [ChargeStatus.NEW, ChargeStatus.NEW, ChargeStatus.COMPLETED]

    def test_run_stops_when_event_is_set(self, check_service, charge):
        stop_event = threading.Event()
        updates = []

        def on_update(result):
            updates.append(result)
            stop_event.set()

        self._poller(check_service, charge.id, interval=60).run(stop_event, on_update)

        assert len(updates) == 1

    def test_run_with_stopped_event_does_not_poll(self, check_service, charge):
        stop_event = threading.Event()
        stop_event.set()

        assert self._poller(check_service, charge.id).run(stop_event) is None
