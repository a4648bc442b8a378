from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class KafkaSettings:
    brokers: str
    message_max_bytes: int | None


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"{name} environment variable is required")
    return value


def get_brokers() -> str:
    return _require_env("KAFKA_BOOTSTRAP_SERVERS")


def get_group_id() -> str:
    return _require_env("KAFKA_GROUP_ID")


def get_message_max_bytes() -> int | None:
    """Kafka producer 의 message.max.bytes 값을 반환한다.

    - KAFKA_MESSAGE_MAX_BYTES 가 비어 있거나 0 이하이면 라이브러리 기본값(None)을 사용한다.
    - 정수가 아니면 설정 문제를 조기에 발견하도록 RuntimeError 를 발생시킨다.
    """

    raw_value = os.getenv("KAFKA_MESSAGE_MAX_BYTES", "").strip()
    if not raw_value:
        return None

    try:
        value = int(raw_value)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            "KAFKA_MESSAGE_MAX_BYTES must be an integer value, got: " f"{raw_value!r}"
        ) from exc

    return value if value > 0 else None


def load_kafka_settings() -> KafkaSettings:
    return KafkaSettings(
        brokers=get_brokers(),
        message_max_bytes=get_message_max_bytes(),
    )
