from __future__ import annotations

import os
from decimal import Decimal
from typing import TYPE_CHECKING

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from services.booking.domain.entity import Booking
from services.booking.domain.enum import BookingStatus
from services.booking.domain.repository import BookingRepository
from services.booking.domain.value_object import BookingId, ScheduledWindow
from services.payment.infrastructure.dynamodb_payment_repository import (
    payment_to_item,
)
from services.shared.domain import Currency, IsoDateTime, Money
from services.shared.domain.exception.exceptions import (
    DuplicateResourceException,
    NotCancellableException,
    OptimisticLockException,
    PersistenceFailedException,
)

if TYPE_CHECKING:
    from services.payment.domain.entity import Payment

_CANCELLABLE_VALUES = {
    ":pending": BookingStatus.PENDING.value,
    ":confirmed": BookingStatus.CONFIRMED.value,
}


def _key(booking_id: BookingId) -> dict:
    return {
        "PK": f"BOOKING#{booking_id}",
        "SK": f"BOOKING#{booking_id}",
    }


class DynamoDBBookingRepository(BookingRepository):
    """DynamoDBを使用したBookingRepository の具象実装"""

    def __init__(self, table_name: str | None = None) -> None:
        self.table_name = table_name or os.getenv("TABLE_NAME")
        self.dynamodb = boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(self.table_name)

    def save(self, booking: Booking) -> None:
        """予約をDBに保存する"""
        item = {
            **_key(booking.id),
            "entity_type": "BOOKING",
            "booking_id": str(booking.id),
            "client_id": booking.client_id,
            "worker_id": booking.worker_id,
            "service_id": booking.service_id,
            "scheduled_date": booking.schedule.scheduled_date,
            "start_time": booking.schedule.start_time,
            "end_time": booking.schedule.end_time,
            "address": booking.address,
            "total_amount": str(booking.total_amount.amount),
            "currency": str(booking.total_amount.currency),
            "status": booking.status.value,
            "created_at": str(booking.created_at),
            "updated_at": str(booking.updated_at),
            "GSI1PK": f"CLIENT#{booking.client_id}",
            "GSI1SK": f"BOOKING#{booking.created_at}",
        }
        try:
            self.table.put_item(Item=item, ConditionExpression=Attr("PK").not_exists())
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise DuplicateResourceException(
                    f"Booking already exists: {booking.id}"
                ) from e
            raise

    def find_by_id(self, booking_id: BookingId) -> Booking | None:
        """予約IDで検索"""
        response = self.table.get_item(Key=_key(booking_id), ConsistentRead=True)
        item = response.get("Item")
        if not item:
            return None
        return self._to_entity(item)

    def update_status(self, booking: Booking, expected_status: BookingStatus) -> None:
        """予約のステータスを更新する"""
        try:
            self.table.update_item(
                Key=_key(booking.id),
                UpdateExpression="SET #status = :status, updated_at = :updated_at",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":status": booking.status.value,
                    ":updated_at": str(booking.updated_at),
                },
                ConditionExpression=Attr("status").eq(expected_status.value),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise OptimisticLockException(
                    f"Booking status conflict: "
                    f"expected {expected_status.value}, "
                    f"booking_id={booking.id}"
                ) from e
            raise

    def acquire_cancellation_lock(
        self,
        booking_id: BookingId,
        token: str,
        now: IsoDateTime,
        expires_at: IsoDateTime,
    ) -> None:
        """キャンセル処理のロックを取得する

        lock_expires_at は UNIX 時刻（秒）。期限切れのロックは取り直せる。
        """
        try:
            self.table.update_item(
                Key=_key(booking_id),
                UpdateExpression=(
                    "SET cancellation_lock = :token, lock_expires_at = :expires_at"
                ),
                ConditionExpression=(
                    "attribute_exists(PK) AND #status IN (:pending, :confirmed) "
                    "AND (attribute_not_exists(cancellation_lock) "
                    "OR lock_expires_at < :now)"
                ),
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":token": token,
                    ":expires_at": expires_at.to_epoch_seconds(),
                    ":now": now.to_epoch_seconds(),
                    **_CANCELLABLE_VALUES,
                },
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise NotCancellableException(
                    f"Booking {booking_id} is already being cancelled or "
                    "is no longer cancellable"
                ) from e
            raise

    def release_cancellation_lock(self, booking_id: BookingId, token: str) -> None:
        """キャンセルロックを解放する"""
        try:
            self.table.update_item(
                Key=_key(booking_id),
                UpdateExpression="REMOVE cancellation_lock, lock_expires_at",
                ConditionExpression="cancellation_lock = :token",
                ExpressionAttributeValues={":token": token},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise OptimisticLockException(
                    f"Cancellation lock is not held: booking_id={booking_id}"
                ) from e
            raise

    def commit_cancellation(
        self,
        booking: Booking,
        cancellation_fee: Payment | None,
        lock_token: str | None,
    ) -> None:
        """手数料台帳の追加と予約のキャンセルを TransactWriteItems で書き込む

        resource の meta.client は Python の型のまま値を受け付ける。
        """
        transact_items: list[dict] = []
        if cancellation_fee is not None:
            transact_items.append(
                {
                    "Put": {
                        "TableName": self.table_name,
                        "Item": payment_to_item(cancellation_fee),
                        "ConditionExpression": "attribute_not_exists(PK)",
                    }
                }
            )

        condition = "#status IN (:pending, :confirmed) AND "
        values: dict = {
            ":cancelled": booking.status.value,
            ":reason": booking.cancellation_reason or "",
            ":at": str(booking.updated_at),
            **_CANCELLABLE_VALUES,
        }
        if lock_token is None:
            condition += "attribute_not_exists(cancellation_lock)"
        else:
            condition += "cancellation_lock = :token"
            values[":token"] = lock_token

        transact_items.append(
            {
                "Update": {
                    "TableName": self.table_name,
                    "Key": _key(booking.id),
                    "UpdateExpression": (
                        "SET #status = :cancelled, cancellation_reason = :reason, "
                        "cancelled_at = :at, updated_at = :at "
                        "REMOVE cancellation_lock, lock_expires_at"
                    ),
                    "ConditionExpression": condition,
                    "ExpressionAttributeNames": {"#status": "status"},
                    "ExpressionAttributeValues": values,
                }
            }
        )

        try:
            self.table.meta.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            code = e.response["Error"]["Code"]
            if cancellation_fee is None:
                if code == "TransactionCanceledException":
                    raise NotCancellableException(
                        f"Booking {booking.id} is no longer cancellable"
                    ) from e
                raise
            raise PersistenceFailedException(
                f"Failed to record cancellation of booking {booking.id}: {code}",
                booking_id=str(booking.id),
            ) from e

    def _to_entity(self, item: dict) -> Booking:
        """DynamoDB アイテムをドメインエンティティに変換する"""
        cancelled_at = item.get("cancelled_at")
        return Booking(
            id=BookingId(value=item["booking_id"]),
            client_id=item["client_id"],
            worker_id=item["worker_id"],
            service_id=item["service_id"],
            schedule=ScheduledWindow(
                scheduled_date=item["scheduled_date"],
                start_time=item["start_time"],
                end_time=item["end_time"],
            ),
            address=item["address"],
            total_amount=Money(
                amount=Decimal(item["total_amount"]),
                currency=Currency(item["currency"]),
            ),
            status=BookingStatus(item["status"]),
            created_at=IsoDateTime.from_string(item["created_at"]),
            updated_at=IsoDateTime.from_string(item["updated_at"]),
            cancellation_reason=item.get("cancellation_reason"),
            cancelled_at=IsoDateTime.from_string(cancelled_at) if cancelled_at else None,
        )
