from __future__ import annotations

from dataclasses import dataclass
from typing import Any


# 재시도 토픽 단계별 지연(초). 인덱스 + 1 이 retry 토픽 번호가 된다.
RetryDelays: list[float] = [
    30.0,
    120.0,
    600.0,
]


class MaxRetryExceededError(Exception):
    """최대 재시도 횟수를 초과한 경우 사용되는 예외."""


@dataclass(slots=True)
class Event:
    """Kafka 메시지의 메타데이터와 페이로드를 표현하는 이벤트.

    payload 는 JSON 직렬화 가능한 dict 를 담고, 실제 인코딩/디코딩은 Kafka I/O 레이어가 담당한다.
    """

    id: str
    payload: Any
    retry: int = 0
    max_retry: int = 0
    last_error: str | None = None

    def __post_init__(self) -> None:
        if self.max_retry <= 0 or self.max_retry > len(RetryDelays):
            self.max_retry = len(RetryDelays)

    @property
    def event_type(self) -> str | None:
        """payload 의 type 필드. payload 가 dict 가 아니면 None."""
        if not isinstance(self.payload, dict):
            return None
        raw = self.payload.get("type")
        return str(raw) if raw is not None else None


@dataclass(frozen=True, slots=True)
class Topic:
    base: str

    def dlq(self) -> str:
        return f"{self.base}.dlq"

    def get_retry_topics(self) -> list[str]:
        return [
            f"{self.base}.retry.{index}" for index in range(1, len(RetryDelays) + 1)
        ]

    def get_retry_topic(self, retry_count: int) -> str:
        if retry_count <= 0 or retry_count > len(RetryDelays):
            raise MaxRetryExceededError()
        return f"{self.base}.retry.{retry_count}"
