"""도메인 예외 -> HTTP 응답 매핑."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import (
    AwardNotFoundError,
    AwardTemplateNotFoundError,
    AwardUpdateConflictError,
    BonusUnavailableError,
    DuplicateAwardError,
    InvalidStatusTransitionError,
    MembershipError,
    PaymentStateError,
    RecordNotFoundError,
)


logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[MembershipError], int, str], ...] = (
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (AwardNotFoundError, status.HTTP_404_NOT_FOUND, "award_not_found"),
    (AwardTemplateNotFoundError, status.HTTP_404_NOT_FOUND, "award_template_not_found"),
    (DuplicateAwardError, status.HTTP_409_CONFLICT, "duplicate_award"),
    (AwardUpdateConflictError, status.HTTP_409_CONFLICT, "award_update_conflict"),
    (BonusUnavailableError, status.HTTP_409_CONFLICT, "bonus_unavailable"),
    (PaymentStateError, status.HTTP_409_CONFLICT, "payment_state"),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT, "invalid_status_transition"),
)


def error_status(exc: MembershipError) -> tuple[int, str]:
    for error_type, status_code, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code, code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "membership_error"


def setup_error_handlers(app: FastAPI) -> None:
    """도메인 예외를 일관된 JSON 에러 응답으로 바꾸는 핸들러를 등록한다."""

    @app.exception_handler(MembershipError)
    async def membership_error_handler(
        request: Request, exc: MembershipError
    ) -> JSONResponse:
        status_code, code = error_status(exc)
        if status_code >= 500:
            logger.error("unhandled membership error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": {"code": code, "message": str(exc)}},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": {"code": "invalid_value", "message": str(exc)}},
        )
