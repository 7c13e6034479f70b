from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from aws_lambda_powertools import Logger

from services.payment.applications.check_crypto_charge import CheckCryptoChargeService
from services.payment.domain.gateway import ChargeStatus
from services.shared.domain import IsoDateTime
from services.shared.domain.exception import GatewayTransientException

logger = Logger(child=True)


@dataclass(frozen=True)
class PollResult:
    """1 回分のポーリング結果"""

    status: ChargeStatus
    next_poll_at: IsoDateTime | None

    @property
    def done(self) -> bool:
        return self.next_poll_at is None


class ChargeStatusPoller:
    """チャージが終端状態になるまで一定間隔で状態を確認する

    待機には threading.Event を使い、stop_event.set() で即座に止められる。
    一時的なゲートウェイエラーは次回のポーリングで再試行する。
    """

    def __init__(
        self,
        service: CheckCryptoChargeService,
        charge_id: str,
        interval_seconds: float = 10.0,
        clock: Callable[[], IsoDateTime] = IsoDateTime.now,
    ) -> None:
        self._service = service
        self._charge_id = charge_id
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._last_status = ChargeStatus.NEW

    def poll_once(self) -> PollResult:
        try:
            charge = self._service.check(self._charge_id)
        except GatewayTransientException as e:
            logger.warning(
                "Transient error while polling charge",
                extra={"charge_id": self._charge_id, "error": str(e)},
            )
            return PollResult(status=self._last_status, next_poll_at=self._next())

        self._last_status = charge.status
        if charge.status.is_terminal:
            return PollResult(status=charge.status, next_poll_at=None)
        return PollResult(status=charge.status, next_poll_at=self._next())

    def run(
        self,
        stop_event: threading.Event,
        on_update: Callable[[PollResult], None] | None = None,
    ) -> PollResult | None:
        """終端状態になるか stop_event がセットされるまでポーリングする"""
        result = None
        while not stop_event.is_set():
            result = self.poll_once()
            if on_update is not None:
                on_update(result)
            if result.done:
                break
            if stop_event.wait(self._interval_seconds):
                break
        return result

    def _next(self) -> IsoDateTime:
        now = self._clock()
        return IsoDateTime(value=now.value + timedelta(seconds=self._interval_seconds))
