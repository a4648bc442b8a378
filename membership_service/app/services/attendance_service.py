from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..exceptions import RecordNotFoundError
from ..models.attendance import AttendanceSnapshot, AttendanceStatus
from ..repositories.attendance_repository import AttendanceRepository
from ..repositories.interfaces import AttendanceRepositoryInterface, UserRepositoryInterface
from ..repositories.user_repository import UserRepository
from .attendance_value import attendance_percentage
from .award_ledger_service import AwardLedgerService, build_award_ledger_service


logger = logging.getLogger(__name__)


class AttendanceService:
    """출석 집계로 출석률을 계산하고 Premio Presenze 를 재평가한다."""

    def __init__(
        self,
        user_repo: UserRepositoryInterface,
        attendance_repo: AttendanceRepositoryInterface,
        ledger: AwardLedgerService,
    ) -> None:
        self._user_repo = user_repo
        self._attendance_repo = attendance_repo
        self._ledger = ledger

    def snapshot(self, user_id: str) -> AttendanceSnapshot:
        user = self._user_repo.find_by_user_id(user_id)
        if user is None:
            raise RecordNotFoundError("user", user_id)

        present = self._attendance_repo.count_present(user_id)
        return AttendanceSnapshot(
            user_id=user_id,
            present_count=present,
            total_lessons=user.total_lessons,
            percentage=attendance_percentage(present, user.total_lessons),
            computed_at=datetime.now(timezone.utc),
        )

    def refresh(self, user_id: str) -> AttendanceSnapshot:
        """출석률을 다시 계산한다. 전체 수업 수를 알 때만 Premio Presenze 를 갱신한다."""
        snapshot = self.snapshot(user_id)
        if not snapshot.total_lessons:
            logger.info(
                "total lessons unknown, attendance award left unchanged",
                extra={"user_id": user_id},
            )
            return snapshot

        award = self._ledger.recompute_attendance_award(user_id, snapshot.percentage)
        if award is not None:
            snapshot.award_value = award.value
        return snapshot

    def record(
        self, user_id: str, lesson_date: datetime, status: AttendanceStatus
    ) -> AttendanceSnapshot:
        """출석 한 건을 기록하고 출석률을 갱신한다."""
        if self._user_repo.find_by_user_id(user_id) is None:
            raise RecordNotFoundError("user", user_id)
        self._attendance_repo.record(user_id, lesson_date, status.value)
        return self.refresh(user_id)


def get_attendance_service(db: Database = Depends(get_database)) -> AttendanceService:
    """FastAPI DI용 AttendanceService 팩토리."""
    return AttendanceService(
        UserRepository(db),
        AttendanceRepository(db),
        build_award_ledger_service(db),
    )
