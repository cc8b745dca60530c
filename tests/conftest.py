from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("VALYU_API_KEY", raising=False)
    monkeypatch.delenv("VALYU_CONFIG_FILE", raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        yield
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


@pytest.fixture()
def config_path(isolated_home: Path) -> Path:
    return isolated_home / ".valyu" / "config.json"
