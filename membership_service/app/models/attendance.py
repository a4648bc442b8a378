from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class AttendanceStatus(StrEnum):
    PRESENT = "presente"
    ABSENT = "assente"


class AttendanceSnapshot(BaseModel):
    """출석 집계 결과와 그에 따라 재계산된 Premio Presenze 상태."""

    user_id: str
    present_count: int
    total_lessons: int | None
    percentage: float
    award_value: float | None = None
    computed_at: datetime
