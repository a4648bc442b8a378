from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from membership_service.app.config import MembershipConfig, load_membership_config


def _write_config(directory: Path, body: str) -> None:
    (directory / "config.yaml").write_text(body, encoding="utf-8")


def test_load_reads_membership_section(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_config(
        tmp_path,
        "membership:\n  season_end_date: '2026-08-31'\n  award_update_max_attempts: 5\n",
    )
    nested = tmp_path / "membership_service"
    nested.mkdir()
    monkeypatch.chdir(nested)

    config = load_membership_config()

    assert config == MembershipConfig(
        season_end_date=date(2026, 8, 31), award_update_max_attempts=5
    )


def test_load_without_section_uses_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_config(tmp_path, "other: {}\n")
    monkeypatch.chdir(tmp_path)

    assert load_membership_config() == MembershipConfig()


@pytest.mark.parametrize(
    "body",
    [
        "membership:\n  season_end_date: 'fine agosto'\n",
        "membership:\n  award_update_max_attempts: 0\n",
        "membership:\n  award_update_max_attempts: tre\n",
    ],
)
def test_load_rejects_invalid_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, body: str
) -> None:
    _write_config(tmp_path, body)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(RuntimeError):
        load_membership_config()
