from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import yaml


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE_NAME = "config.yaml"
DEFAULT_AWARD_UPDATE_MAX_ATTEMPTS = 3
DEFAULT_SERVICE_PORT = 8010


@dataclass(slots=True)
class MembershipConfig:
    """membership-service 도메인 설정.

    - season_end_date: 시즌 구독의 만료일. None 이면 8월 31일(시즌 종료) 기준으로 계산한다.
    - award_update_max_attempts: premi 잔액 CAS 업데이트 재시도 한도.
    """

    season_end_date: date | None = None
    award_update_max_attempts: int = DEFAULT_AWARD_UPDATE_MAX_ATTEMPTS


def _find_config_path() -> Path | None:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다."""

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _parse_date(raw: object, path: Path) -> date | None:
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw))
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            f"invalid membership.season_end_date in {path}: {raw!r}",
        ) from exc


def load_membership_config() -> MembershipConfig:
    """config.yaml 의 membership 섹션을 읽는다. 파일이 없으면 기본값을 사용한다."""

    path = _find_config_path()
    if path is None:
        logger.info("%s not found, using default membership config", DEFAULT_CONFIG_FILE_NAME)
        return MembershipConfig()

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    section = data.get("membership") or {}
    raw_attempts = section.get(
        "award_update_max_attempts", DEFAULT_AWARD_UPDATE_MAX_ATTEMPTS
    )
    try:
        attempts = int(raw_attempts)
    except (TypeError, ValueError) as exc:  # noqa: TRY003
        raise RuntimeError(
            f"invalid membership.award_update_max_attempts in {path}: {raw_attempts!r}",
        ) from exc
    if attempts <= 0:
        raise RuntimeError(
            f"membership.award_update_max_attempts must be positive in {path}",
        )

    return MembershipConfig(
        season_end_date=_parse_date(section.get("season_end_date"), path),
        award_update_max_attempts=attempts,
    )


def get_service_port() -> int:
    return int(os.getenv("MEMBERSHIP_SERVICE_PORT", str(DEFAULT_SERVICE_PORT)))


_config: MembershipConfig | None = None


def get_membership_config() -> MembershipConfig:
    """프로세스 전역 MembershipConfig. 최초 호출 시 한 번만 읽는다."""

    global _config
    if _config is None:
        _config = load_membership_config()
    return _config
