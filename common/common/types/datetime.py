from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator
from pydantic.functional_serializers import PlainSerializer


def as_utc(value: datetime) -> datetime:
    """naive datetime 은 UTC 로 간주하고, aware datetime 은 UTC 로 변환한다."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_iso8601(value: datetime) -> str:
    return as_utc(value).isoformat()


# API 요청/응답용 datetime.
# - 요청: 타임존 없는 값(예: 출석 입력 폼의 "2025-01-12T18:30")은 UTC 로 받는다.
# - 응답: 항상 +00:00 오프셋이 붙은 ISO8601 문자열로 내보낸다.
UtcDateTime = Annotated[
    datetime,
    AfterValidator(as_utc),
    PlainSerializer(to_utc_iso8601, return_type=str, when_used="json"),
]
