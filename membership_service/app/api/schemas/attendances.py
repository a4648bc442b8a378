from __future__ import annotations

from pydantic import BaseModel

from common.types.datetime import UtcDateTime

from ...models.attendance import AttendanceSnapshot, AttendanceStatus


class RecordAttendanceRequest(BaseModel):
    lesson_date: UtcDateTime
    status: AttendanceStatus


class AttendanceResponse(BaseModel):
    user_id: str
    present_count: int
    total_lessons: int | None
    percentage: float
    award_value: float | None
    computed_at: UtcDateTime

    @classmethod
    def from_domain(cls, snapshot: AttendanceSnapshot) -> "AttendanceResponse":
        return cls.model_validate(snapshot.model_dump())
