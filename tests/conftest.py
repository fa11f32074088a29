"""Shared fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep BTMON_* variables and any local .env out of settings loading."""
    for key in ("BTMON_SERVERS", "BTMON_USER", "BTMON_PASSWORD", "BTMON_TIMEOUT", "BTMON_INTERVAL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
