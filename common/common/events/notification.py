"""UI 알림(토스트) 이벤트 정의."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Self


class NotificationEventType:
    """알림 이벤트 타입 상수."""

    NOTIFICATION_CREATED = "notification.created"


@dataclass(slots=True)
class NotificationCreatedEvent:
    """유저에게 보여줄 처리 결과 알림.

    premi 지급, 보너스 환불, 계정 잠금 해제 등의 결과를 UI 가 토스트로 렌더링한다.
    """

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    kind: str
    title: str
    description: str
    variant: str = "default"
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            kind=str(data["kind"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            variant=str(data.get("variant", "default")),
            data=dict(data.get("data") or {}),
        )
