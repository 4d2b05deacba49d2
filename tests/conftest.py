"""Shared fixtures for the perch test suite."""

import atexit
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from perch.app import Application


@pytest.fixture(autouse=True)
def _restore_excepthook(monkeypatch: pytest.MonkeyPatch) -> None:
    """Applications install their error handler as sys.excepthook."""
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """An application base directory with Modules/ and runtime/."""
    (tmp_path / "Modules").mkdir()
    (tmp_path / "runtime").mkdir()
    return tmp_path


@pytest.fixture
def make_app(app_dir: Path) -> Iterator[Callable[..., Application]]:
    """Build applications rooted at ``app_dir``.

    Apps whose run did not finish are unregistered from atexit so they do
    not fire when the test session ends.
    """
    created: list[Application] = []

    def factory(config: dict[str, Any] | None = None, cls: type[Application] = Application) -> Application:
        app = cls({"base_path": str(app_dir), **(config or {})})
        created.append(app)
        return app

    yield factory
    for app in created:
        atexit.unregister(app._end_at_exit)
