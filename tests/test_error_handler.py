"""Tests for perch.error_handler: formatting and last-resort reporting."""

import logging
import sys
from collections.abc import Callable

import pytest

from perch._internal.invoke import bind_params
from perch.error_handler import ErrorHandler, format_compact_traceback, format_minimal_error
from perch.errors import HTTPError, ResolutionError


def _raise(exc: BaseException) -> BaseException:
    try:
        raise exc
    except BaseException as caught:
        return caught


def _raise_from(func: Callable[[], None]) -> BaseException:
    try:
        func()
    except Exception as caught:
        return caught
    raise AssertionError("expected an exception")


class TestFormatting:
    def test_compact_includes_frames(self) -> None:
        text = format_compact_traceback(_raise(ValueError("bad value")))
        assert text.startswith("ValueError: bad value")
        assert "Trace (app frames):" in text
        assert "_raise()" in text

    def test_compact_hides_framework_frames(self) -> None:
        def view(id: int) -> None: ...

        with pytest.raises(HTTPError) as exc_info:
            bind_params(view, {})
        text = format_compact_traceback(exc_info.value)
        assert "test_compact_hides_framework_frames()" in text
        assert "invoke.py" not in text

    def test_compact_reports_cause(self) -> None:
        def load() -> None:
            try:
                {}["missing"]
            except KeyError as exc:
                raise RuntimeError("config broken") from exc

        text = format_compact_traceback(_raise_from(load))
        assert text.splitlines()[0] == "RuntimeError: config broken"
        assert text.splitlines()[-1] == "  Caused by KeyError: 'missing'"

    def test_suppressed_context_is_not_reported(self) -> None:
        def load() -> None:
            try:
                {}["missing"]
            except KeyError:
                raise RuntimeError("clean") from None

        assert "Caused by" not in format_compact_traceback(_raise_from(load))

    def test_compact_without_traceback(self) -> None:
        assert format_compact_traceback(ValueError("x")) == "ValueError: x"

    def test_minimal(self) -> None:
        text = format_minimal_error(_raise(KeyError("k")))
        assert text.startswith("KeyError at ")
        assert "test_error_handler.py" in text
        assert "\n" not in text

    def test_minimal_without_traceback(self) -> None:
        assert format_minimal_error(RuntimeError("boom")) == "RuntimeError: boom"


class TestStyle:
    def test_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PERCH_TRACEBACK", raising=False)
        assert ErrorHandler().style == "compact"

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PERCH_TRACEBACK", "FULL")
        assert ErrorHandler().style == "full"

    def test_option_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PERCH_TRACEBACK", "full")
        assert ErrorHandler(traceback="minimal").style == "minimal"


class TestInstall:
    def test_install_and_uninstall(self) -> None:
        before = sys.excepthook
        handler = ErrorHandler()
        handler.install()
        assert sys.excepthook == handler.handle_exception
        handler.install()
        handler.uninstall()
        assert sys.excepthook is before

    def test_uninstall_when_not_installed(self) -> None:
        before = sys.excepthook
        ErrorHandler().uninstall()
        assert sys.excepthook is before


class TestReport:
    def test_http_errors_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="perch.app"):
            ErrorHandler().report(ResolutionError("/nowhere"))
        assert caplog.records[0].levelno == logging.DEBUG
        assert "404" in caplog.records[0].getMessage()

    def test_compact(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="perch.app"):
            ErrorHandler(traceback="compact").report(_raise(ValueError("bad")))
        message = caplog.records[0].getMessage()
        assert "ValueError: bad" in message
        assert "Trace" in message

    def test_minimal(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="perch.app"):
            ErrorHandler(traceback="minimal").report(_raise(ValueError("bad")))
        assert caplog.records[0].getMessage().startswith("Unhandled error: ValueError at ")

    def test_full(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="perch.app"):
            ErrorHandler(traceback="full").report(_raise(ValueError("bad")))
        assert caplog.records[0].exc_info is not None

    def test_excepthook_entry(self, caplog: pytest.LogCaptureFixture) -> None:
        exc = _raise(RuntimeError("crash"))
        with caplog.at_level(logging.ERROR, logger="perch.app"):
            ErrorHandler().handle_exception(RuntimeError, exc, exc.__traceback__)
        assert "RuntimeError: crash" in caplog.text

    def test_keyboard_interrupt_goes_to_default_hook(
        self, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen: list[type[BaseException]] = []
        monkeypatch.setattr(sys, "__excepthook__", lambda t, e, tb: seen.append(t))
        exc = KeyboardInterrupt()
        ErrorHandler().handle_exception(KeyboardInterrupt, exc, None)
        assert seen == [KeyboardInterrupt]
        assert caplog.records == []
