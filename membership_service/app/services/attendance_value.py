"""출석률 -> Premio Presenze 액면가 환산표.

구간은 [하한, 상한) 반열린 구간이고 마지막 구간만 100 을 포함한다.
범위를 벗어난 입력은 [0, 100] 으로 잘라낸 뒤 환산한다.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum


class AttendanceTier(StrEnum):
    RED = "red"
    ORANGE = "orange"
    GREEN = "green"
    GOLD = "gold"


@dataclass(frozen=True, slots=True)
class AttendanceBand:
    lower: float
    upper: float
    value: float
    tier: AttendanceTier

    def contains(self, percentage: float) -> bool:
        if self.upper >= 100:
            return self.lower <= percentage <= self.upper
        return self.lower <= percentage < self.upper


ATTENDANCE_BANDS: tuple[AttendanceBand, ...] = (
    AttendanceBand(0, 5, 0.50, AttendanceTier.RED),
    AttendanceBand(5, 10, 1, AttendanceTier.RED),
    AttendanceBand(10, 30, 3, AttendanceTier.RED),
    AttendanceBand(30, 40, 4, AttendanceTier.ORANGE),
    AttendanceBand(40, 50, 5, AttendanceTier.ORANGE),
    AttendanceBand(50, 60, 6, AttendanceTier.ORANGE),
    AttendanceBand(60, 70, 7, AttendanceTier.GREEN),
    AttendanceBand(70, 80, 8, AttendanceTier.GREEN),
    AttendanceBand(80, 90, 10, AttendanceTier.GREEN),
    AttendanceBand(90, 95, 15, AttendanceTier.GOLD),
    AttendanceBand(95, 100, 20, AttendanceTier.GOLD),
)


def clamp_percentage(percentage: float) -> float:
    if not math.isfinite(percentage):
        raise ValueError(f"attendance percentage must be a finite number: {percentage!r}")
    return min(100.0, max(0.0, float(percentage)))


def attendance_band(percentage: float) -> AttendanceBand:
    """percentage 가 속한 구간을 반환한다."""
    clamped = clamp_percentage(percentage)
    for band in ATTENDANCE_BANDS:
        if band.contains(clamped):
            return band
    # 구간표가 [0, 100] 을 빈틈없이 덮으므로 도달하지 않는다.
    raise ValueError(f"no attendance band for percentage {percentage!r}")


def attendance_award_value(percentage: float) -> float:
    return attendance_band(percentage).value


def attendance_percentage(present_count: int, total_lessons: int | None) -> int:
    """출석 횟수 / 전체 수업 수를 반올림한 백분율. 전체 수업 수를 모르면 0."""
    if not total_lessons or total_lessons <= 0:
        return 0
    return int(math.floor(present_count / total_lessons * 100 + 0.5))
