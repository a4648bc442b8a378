from __future__ import annotations

import uuid
from dataclasses import asdict, is_dataclass
from typing import Any, Mapping

from .core import Event, RetryDelays


def new_json_event(
    payload: Mapping[str, Any] | Any,
    *,
    max_retry: int | None = None,
    event_id: str | None = None,
) -> Event:
    """도메인 이벤트(dict 또는 dataclass)를 버스 전송용 Event 로 감싼다.

    - id 가 비어 있으면 uuid4 를 사용한다.
    - max_retry 가 1~len(RetryDelays) 범위를 벗어나면 기본값(len(RetryDelays))을 사용한다.
    """
    if max_retry is None or max_retry <= 0 or max_retry > len(RetryDelays):
        max_retry = len(RetryDelays)

    if not event_id:
        event_id = str(uuid.uuid4())

    body = asdict(payload) if is_dataclass(payload) else dict(payload)
    return Event(id=event_id, payload=body, retry=0, max_retry=max_retry)
