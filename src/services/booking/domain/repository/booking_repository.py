from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING

from services.booking.domain.entity import Booking
from services.booking.domain.enum import BookingStatus
from services.booking.domain.value_object import BookingId
from services.shared.domain import IsoDateTime, Repository

if TYPE_CHECKING:
    from services.payment.domain.entity import Payment


class BookingRepository(Repository[Booking, BookingId]):
    """予約リポジトリのインターフェース"""

    @abstractmethod
    def save(self, booking: Booking) -> None:
        """予約を保存する"""
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, booking_id: BookingId) -> Booking | None:
        """予約IDで検索する"""
        raise NotImplementedError

    @abstractmethod
    def update_status(self, booking: Booking, expected_status: BookingStatus) -> None:
        """ステータスを条件付きで更新する（競合時は OptimisticLockException）"""
        raise NotImplementedError

    @abstractmethod
    def acquire_cancellation_lock(
        self,
        booking_id: BookingId,
        token: str,
        now: IsoDateTime,
        expires_at: IsoDateTime,
    ) -> None:
        """キャンセル処理のロックを取得する

        ステータスがキャンセル可能で、有効な（expires_at が now 以降の）
        ロックが無い場合のみ成功する。期限切れのロックは上書きする。
        取得できない場合は NotCancellableException。
        """
        raise NotImplementedError

    @abstractmethod
    def release_cancellation_lock(self, booking_id: BookingId, token: str) -> None:
        """自分が保持しているキャンセルロックを解放する"""
        raise NotImplementedError

    @abstractmethod
    def commit_cancellation(
        self,
        booking: Booking,
        cancellation_fee: Payment | None,
        lock_token: str | None,
    ) -> None:
        """キャンセル手数料の台帳行とステータス遷移を 1 トランザクションで書き込む

        失敗時は PersistenceFailedException（どちらも書き込まれない）。
        """
        raise NotImplementedError
