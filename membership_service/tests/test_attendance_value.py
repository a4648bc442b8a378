from __future__ import annotations

import math

import pytest

from membership_service.app.services.attendance_value import (
    ATTENDANCE_BANDS,
    AttendanceTier,
    attendance_award_value,
    attendance_band,
    attendance_percentage,
)


@pytest.mark.parametrize(
    "percentage,expected",
    [
        (0, 0.5),
        (4.9, 0.5),
        (5, 1),
        (10, 3),
        (29.9, 3),
        (30, 4),
        (45, 5),
        (55, 6),
        (60, 7),
        (79, 8),
        (80, 10),
        (94.9, 15),
        (95, 20),
        (100, 20),
    ],
)
def test_attendance_award_value_table(percentage: float, expected: float) -> None:
    assert attendance_award_value(percentage) == expected


def test_out_of_range_percentages_are_clamped() -> None:
    assert attendance_award_value(-12) == 0.5
    assert attendance_award_value(140) == 20


def test_non_finite_percentage_is_rejected() -> None:
    with pytest.raises(ValueError):
        attendance_award_value(math.nan)


def test_value_table_is_non_decreasing() -> None:
    values = [attendance_award_value(p / 10) for p in range(0, 1001)]
    assert values == sorted(values)


def test_bands_cover_whole_range_without_gaps() -> None:
    assert ATTENDANCE_BANDS[0].lower == 0
    assert ATTENDANCE_BANDS[-1].upper == 100
    for previous, current in zip(ATTENDANCE_BANDS, ATTENDANCE_BANDS[1:]):
        assert previous.upper == current.lower


def test_band_tiers() -> None:
    assert attendance_band(12).tier == AttendanceTier.RED
    assert attendance_band(45).tier == AttendanceTier.ORANGE
    assert attendance_band(75).tier == AttendanceTier.GREEN
    assert attendance_band(97).tier == AttendanceTier.GOLD


@pytest.mark.parametrize(
    "present,total,expected",
    [(0, 20, 0), (11, 20, 55), (1, 8, 13), (1, 3, 33), (2, 3, 67), (5, None, 0), (5, 0, 0)],
)
def test_attendance_percentage_rounds_half_up(
    present: int, total: int | None, expected: int
) -> None:
    assert attendance_percentage(present, total) == expected
