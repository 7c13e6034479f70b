import os
from decimal import Decimal

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from services.booking.domain.value_object import BookingId
from services.payment.domain.entity import Payment
from services.payment.domain.enum import PaymentMethod, PaymentStatus
from services.payment.domain.repository import PaymentRepository
from services.payment.domain.value_object import PaymentId
from services.shared.domain import Currency, IsoDateTime, Money
from services.shared.domain.exception.exceptions import (
    DuplicateResourceException,
    OptimisticLockException,
)


def payment_key(payment: Payment) -> dict:
    return {
        "PK": f"BOOKING#{payment.booking_id}",
        "SK": f"PAYMENT#{payment.id}",
    }


def payment_to_item(payment: Payment) -> dict:
    """Payment エンティティを DynamoDB アイテムに変換する"""
    item = {
        **payment_key(payment),
        "entity_type": "PAYMENT",
        "payment_id": str(payment.id),
        "booking_id": str(payment.booking_id),
        "payer_id": payment.payer_id,
        "method": payment.method.value,
        "amount": str(payment.amount.amount),
        "currency": str(payment.amount.currency),
        "status": payment.status.value,
        "metadata": payment.metadata,
        "created_at": str(payment.created_at),
    }
    if payment.transaction_id:
        item["transaction_id"] = payment.transaction_id
        item["GSI1PK"] = f"TXN#{payment.transaction_id}"
        item["GSI1SK"] = f"PAYMENT#{payment.id}"
    return item


def payment_from_item(item: dict) -> Payment:
    """DynamoDB アイテムをドメインエンティティに変換する"""
    return Payment(
        id=PaymentId(value=item["payment_id"]),
        booking_id=BookingId(value=item["booking_id"]),
        payer_id=item["payer_id"],
        method=PaymentMethod(item["method"]),
        amount=Money(
            amount=Decimal(item["amount"]),
            currency=Currency(item["currency"]),
        ),
        status=PaymentStatus(item["status"]),
        transaction_id=item.get("transaction_id"),
        metadata=item.get("metadata") or {},
        created_at=IsoDateTime.from_string(item["created_at"]),
    )


class DynamoDBPaymentRepository(PaymentRepository):
    """DynamoDBを使用したPaymentRepository の具象実装"""

    def __init__(self, table_name: str | None = None) -> None:
        self.table_name = table_name or os.getenv("TABLE_NAME")
        self.dynamodb = boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(self.table_name)

    def save(self, payment: Payment) -> None:
        """決済をDBに保存する"""
        try:
            self.table.put_item(
                Item=payment_to_item(payment),
                ConditionExpression=Attr("PK").not_exists(),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise DuplicateResourceException(
                    f"Payment already exists: {payment.id}"
                ) from e
            raise

    def find_by_id(self, payment_id: PaymentId) -> Payment | None:
        """決済IDで検索"""
        response = self.table.scan(
            FilterExpression=Attr("payment_id").eq(str(payment_id)),
            ConsistentRead=True,
        )
        items = response.get("Items", [])
        if not items:
            return None
        return payment_from_item(items[0])

    def find_by_booking_id(self, booking_id: BookingId) -> list[Payment]:
        """予約IDで決済を検索する"""
        kwargs: dict = {
            "KeyConditionExpression": Key("PK").eq(f"BOOKING#{booking_id}")
            & Key("SK").begins_with("PAYMENT#"),
            "ConsistentRead": True,
        }
        payments: list[Payment] = []
        while True:
            response = self.table.query(**kwargs)
            payments.extend(payment_from_item(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return payments
            kwargs["ExclusiveStartKey"] = last_key

    def find_by_transaction_id(self, transaction_id: str) -> Payment | None:
        """ゲートウェイの取引IDで予約代金の決済を検索する（GSI1）

        キャンセル手数料の台帳行も同じ取引IDを持つため除外する。
        """
        response = self.table.query(
            IndexName="GSI1",
            KeyConditionExpression=Key("GSI1PK").eq(f"TXN#{transaction_id}"),
        )
        for item in response.get("Items", []):
            payment = payment_from_item(item)
            if payment.method.is_primary:
                return payment
        return None

    def update(self, payment: Payment, expected_status: PaymentStatus) -> None:
        """決済のステータス・取引ID・メタデータを更新する"""
        update_expression = "SET #status = :status, metadata = :metadata"
        values: dict = {
            ":status": payment.status.value,
            ":metadata": payment.metadata,
        }
        if payment.transaction_id:
            update_expression += (
                ", transaction_id = :txn, GSI1PK = :gsi1pk, GSI1SK = :gsi1sk"
            )
            values[":txn"] = payment.transaction_id
            values[":gsi1pk"] = f"TXN#{payment.transaction_id}"
            values[":gsi1sk"] = f"PAYMENT#{payment.id}"

        try:
            self.table.update_item(
                Key=payment_key(payment),
                UpdateExpression=update_expression,
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
                ConditionExpression=Attr("status").eq(expected_status.value),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise OptimisticLockException(
                    f"Payment status conflict: "
                    f"expected {expected_status.value}, "
                    f"payment_id={payment.id}"
                ) from e
            raise
