from typing import TypeVar

from .entity import Entity

ID = TypeVar("ID")


class AggregateRoot(Entity[ID]):
    """AggregateRoot 基底クラス

    - 状態遷移はすべて集約ルートのメソッド経由で行う
    - 永続化の単位 = 集約
    """

    def __init__(self, id: ID) -> None:
        super().__init__(id)
        self._domain_events: list[object] = []

    def record_event(self, event: object) -> None:
        """ドメインイベントを記録する"""
        self._domain_events.append(event)

    def pull_domain_events(self) -> list[object]:
        """記録済みのドメインイベントを取り出してクリアする"""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events
