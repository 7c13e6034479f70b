from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from services.booking.domain import BookingStatus
from services.booking.infrastructure.dynamodb_booking_repository import (
    DynamoDBBookingRepository,
)
from services.payment.domain import PaymentFactory
from services.payment.domain.gateway import RefundResult, RefundStatus
from services.payment.domain.policy import compute_refund_split
from services.shared.domain import DuplicateResourceException, IsoDateTime, Money
from services.shared.domain.exception import (
    NotCancellableException,
    OptimisticLockException,
    PersistenceFailedException,
)


NOW = IsoDateTime.from_string("2026-10-19T10:00:00+00:00")
LEASE_END = NOW.plus_seconds(120)


def _client_error(code: str, operation: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def repository():
    with patch(
        "services.booking.infrastructure.dynamodb_booking_repository.boto3"
    ) as mock_boto3:
        mock_boto3.resource.return_value.Table.return_value = MagicMock()
        yield DynamoDBBookingRepository(table_name="test-table")


@pytest.fixture
def cancellation_fee(booking_id):
    split = compute_refund_split(Money.eur("100.00"))
    return PaymentFactory().create_cancellation_fee(
        booking_id=booking_id,
        payer_id="client-1",
        split=split,
        refund=RefundResult("re_1", RefundStatus.SUCCEEDED, split.refund_amount),
        reason="x",
        payment_intent_id="pi_123",
    )


class TestSaveAndFind:
    def test_save_writes_booking_item(self, repository, create_booking):
        booking = create_booking()

        repository.save(booking)

        item = repository.table.put_item.call_args.kwargs["Item"]
        assert item["PK"] == "BOOKING#booking-123"
        assert item["SK"] == "BOOKING#booking-123"
        assert item["total_amount"] == "100.00"
        assert item["currency"] == "EUR"
        assert item["status"] == "confirmed"
        assert item["GSI1PK"] == "CLIENT#client-1"

    def test_save_duplicate_raises(self, repository, create_booking):
        repository.table.put_item.side_effect = _client_error(
            "ConditionalCheckFailedException", "PutItem"
        )
        with pytest.raises(DuplicateResourceException):
            repository.save(create_booking())

    def test_find_by_id_round_trip(self, repository, create_booking):
        booking = create_booking()
        repository.save(booking)
        item = repository.table.put_item.call_args.kwargs["Item"]
        repository.table.get_item.return_value = {"Item": item}

        found = repository.find_by_id(booking.id)

        assert found == booking
        assert found.total_amount == Money.eur("100.00")
        assert found.status == BookingStatus.CONFIRMED
        assert found.schedule == booking.schedule

    def test_find_by_id_not_found(self, repository, booking_id):
        repository.table.get_item.return_value = {}
        assert repository.find_by_id(booking_id) is None


class TestConditionalUpdates:
    def test_update_status_conflict(self, repository, create_booking):
        repository.table.update_item.side_effect = _client_error(
            "ConditionalCheckFailedException"
        )
        with pytest.raises(OptimisticLockException):
            repository.update_status(create_booking(), BookingStatus.PENDING)

    def test_acquire_lock_condition(self, repository, booking_id):
        repository.acquire_cancellation_lock(booking_id, "token-1", NOW, LEASE_END)

        kwargs = repository.table.update_item.call_args.kwargs
        assert "attribute_not_exists(cancellation_lock)" in kwargs["ConditionExpression"]
        assert kwargs["ExpressionAttributeValues"][":token"] == "token-1"
        assert kwargs["ExpressionAttributeValues"][":confirmed"] == "confirmed"

    def test_acquire_lock_stores_lease_and_takes_over_expired_lock(
        self, repository, booking_id
    ):
        """期限切れのロックは取り直せる"""
        repository.acquire_cancellation_lock(booking_id, "token-1", NOW, LEASE_END)

        kwargs = repository.table.update_item.call_args.kwargs
        assert "lock_expires_at = :expires_at" in kwargs["UpdateExpression"]
        assert "OR lock_expires_at < :now" in kwargs["ConditionExpression"]
        values = kwargs["ExpressionAttributeValues"]
        assert values[":now"] == NOW.to_epoch_seconds()
        assert values[":expires_at"] == NOW.to_epoch_seconds() + 120

    def test_release_lock_removes_lease(self, repository, booking_id):
        repository.release_cancellation_lock(booking_id, "token-1")

        kwargs = repository.table.update_item.call_args.kwargs
        assert kwargs["UpdateExpression"] == "REMOVE cancellation_lock, lock_expires_at"

    def test_acquire_lock_lost_race(self, repository, booking_id):
        repository.table.update_item.side_effect = _client_error(
            "ConditionalCheckFailedException"
        )
        with pytest.raises(NotCancellableException):
            repository.acquire_cancellation_lock(booking_id, "token-1", NOW, LEASE_END)

    def test_other_errors_propagate(self, repository, booking_id):
        repository.table.update_item.side_effect = _client_error(
            "ProvisionedThroughputExceededException"
        )
        with pytest.raises(ClientError):
            repository.acquire_cancellation_lock(booking_id, "token-1", NOW, LEASE_END)

    def test_release_lock_not_held(self, repository, booking_id):
        repository.table.update_item.side_effect = _client_error(
            "ConditionalCheckFailedException"
        )
        with pytest.raises(OptimisticLockException):
            repository.release_cancellation_lock(booking_id, "token-1")


class TestCommitCancellation:
    def test_writes_fee_and_booking_in_one_transaction(
        self, repository, create_booking, cancellation_fee
    ):
        booking = create_booking()
        booking.cancel(cancelled_by="client-1", reason="x")

        repository.commit_cancellation(booking, cancellation_fee, "token-1")

        client = repository.table.meta.client
        items = client.transact_write_items.call_args.kwargs["TransactItems"]
        put, update = items
        assert put["Put"]["Item"]["SK"] == "PAYMENT#cancellation_fee_for_booking-123"
        assert put["Put"]["Item"]["amount"] == "20.00"
        assert put["Put"]["ConditionExpression"] == "attribute_not_exists(PK)"
        assert update["Update"]["Key"]["PK"] == "BOOKING#booking-123"
        assert "cancellation_lock = :token" in update["Update"]["ConditionExpression"]
        values = update["Update"]["ExpressionAttributeValues"]
        assert values[":cancelled"] == "cancelled"
        assert values[":token"] == "token-1"

    def test_without_fee_requires_no_lock(self, repository, create_booking):
        booking = create_booking(status=BookingStatus.PENDING)
        booking.cancel(cancelled_by="client-1", reason="x")

        repository.commit_cancellation(booking, None, None)

        client = repository.table.meta.client
        items = client.transact_write_items.call_args.kwargs["TransactItems"]
        assert len(items) == 1
        condition = items[0]["Update"]["ConditionExpression"]
        assert "attribute_not_exists(cancellation_lock)" in condition

    def test_without_fee_cancelled_transaction(self, repository, create_booking):
        repository.table.meta.client.transact_write_items.side_effect = _client_error(
            "TransactionCanceledException", "TransactWriteItems"
        )
        booking = create_booking()
        booking.cancel(cancelled_by="client-1", reason="x")

        with pytest.raises(NotCancellableException):
            repository.commit_cancellation(booking, None, None)

    def test_with_fee_failure_is_persistence_failed(
        self, repository, create_booking, cancellation_fee
    ):
        repository.table.meta.client.transact_write_items.side_effect = _client_error(
            "TransactionCanceledException", "TransactWriteItems"
        )
        booking = create_booking()
        booking.cancel(cancelled_by="client-1", reason="x")

        with pytest.raises(PersistenceFailedException) as exc_info:
            repository.commit_cancellation(booking, cancellation_fee, "token-1")
        assert exc_info.value.booking_id == "booking-123"
