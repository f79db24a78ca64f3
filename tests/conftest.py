"""Shared fixtures for the sizewatch tests."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from sizewatch.config import WatchConfig, build_config


@pytest.fixture
def watch_folder(tmp_path: Path) -> Path:
    """Provide an empty directory to watch."""
    folder = tmp_path / "watched"
    folder.mkdir()
    return folder


@pytest.fixture
def make_config(watch_folder: Path) -> Callable[..., WatchConfig]:
    """Build a validated WatchConfig for ``watch_folder`` with option overrides."""

    def factory(**overrides: Any) -> WatchConfig:
        return build_config({"folder": str(watch_folder)}, overrides)

    return factory
