"""출석 API 라우터."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from ...services.attendance_service import AttendanceService, get_attendance_service
from ..schemas.attendances import AttendanceResponse, RecordAttendanceRequest


router = APIRouter(prefix="/attendances", tags=["attendances"])

AttendanceServiceDep = Annotated[AttendanceService, Depends(get_attendance_service)]


@router.get("/{user_id}", summary="출석률 조회")
def get_attendance(user_id: str, service: AttendanceServiceDep) -> AttendanceResponse:
    return AttendanceResponse.from_domain(service.snapshot(user_id))


@router.post(
    "/{user_id}",
    status_code=status.HTTP_201_CREATED,
    summary="출석 기록 후 Premio Presenze 재평가",
)
def record_attendance(
    user_id: str,
    req: RecordAttendanceRequest,
    service: AttendanceServiceDep,
) -> AttendanceResponse:
    return AttendanceResponse.from_domain(
        service.record(user_id, req.lesson_date, req.status)
    )


@router.post("/{user_id}/refresh", summary="출석률 재계산 후 Premio Presenze 재평가")
def refresh_attendance(user_id: str, service: AttendanceServiceDep) -> AttendanceResponse:
    return AttendanceResponse.from_domain(service.refresh(user_id))
