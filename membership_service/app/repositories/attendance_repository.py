from __future__ import annotations

from datetime import datetime, timezone

from pymongo.database import Database

from .interfaces import AttendanceRepositoryInterface
from ..models.attendance import AttendanceStatus


class AttendanceRepository(AttendanceRepositoryInterface):
    """attendances 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._col = database["attendances"]

    def count_present(self, user_id: str) -> int:
        return self._col.count_documents(
            {"user_id": user_id, "status": AttendanceStatus.PRESENT.value}
        )

    def record(self, user_id: str, lesson_date: datetime, status: str) -> None:
        now = datetime.now(timezone.utc)
        self._col.insert_one(
            {
                "user_id": user_id,
                "lesson_date": lesson_date,
                "status": AttendanceStatus(status).value,
                "created_at": now,
                "updated_at": now,
            }
        )
