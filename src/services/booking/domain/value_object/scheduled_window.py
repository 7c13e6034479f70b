from dataclasses import dataclass
from datetime import date, time
from functools import cached_property


@dataclass(frozen=True)
class ScheduledWindow:
    """作業予定の日時枠（予定日 + 開始時刻 + 終了時刻）"""

    scheduled_date: str
    start_time: str
    end_time: str

    def __post_init__(self) -> None:
        try:
            _ = self._date
            start = self._start
            end = self._end
        except ValueError as e:
            raise ValueError(f"Invalid schedule format: {e}") from e

        if end <= start:
            raise ValueError("End time must be after start time")

    @cached_property
    def _date(self) -> date:
        return date.fromisoformat(self.scheduled_date)

    @cached_property
    def _start(self) -> time:
        return time.fromisoformat(self.start_time)

    @cached_property
    def _end(self) -> time:
        return time.fromisoformat(self.end_time)

    def duration_minutes(self) -> int:
        """作業枠の長さ（分）"""
        start = self._start.hour * 60 + self._start.minute
        end = self._end.hour * 60 + self._end.minute
        return end - start
