"""출석 관련 이벤트 정의."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Self


class AttendanceEventType:
    """출석 이벤트 타입 상수."""

    ATTENDANCE_CHANGED = "attendance.changed"


@dataclass(slots=True)
class AttendanceChangedEvent:
    """출석률 변경 이벤트.

    출석 기록이나 전체 수업 수가 바뀌면 발행되며, premi 원장이 Premio Presenze 값을 재계산한다.
    """

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    percentage: float
    present_count: int | None = None
    total_lessons: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        present = data.get("present_count")
        total = data.get("total_lessons")
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            percentage=float(data["percentage"]),
            present_count=int(present) if present is not None else None,
            total_lessons=int(total) if total is not None else None,
        )
