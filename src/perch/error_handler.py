"""Last-resort error reporting.

``ErrorHandler`` is installed as ``sys.excepthook`` while the application
bootstraps (unless its config sets ``enabled: False``). It reports
failures that escaped ``Application.run()``:

- ``HTTPError`` subclasses (``ResolutionError``, ``AuthError``) are
  client-facing outcomes and are logged at debug level with their status.
- Everything else is logged as an error with a traceback whose verbosity
  comes from the ``PERCH_TRACEBACK`` environment variable
  (``compact`` by default, ``full`` or ``minimal``).

The formatting helpers are also used by ``Application.display_error()``
when no handler is installed.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback as _traceback
from types import TracebackType

from perch.component import Component
from perch.errors import HTTPError

logger = logging.getLogger("perch.app")

_STDLIB_DIR = os.path.dirname(os.__file__)
_PERCH_DIR = os.path.dirname(os.path.abspath(__file__))

# Frames shown per exception in compact tracebacks
MAX_FRAMES = 5


def _is_app_frame(filename: str) -> bool:
    """True for frames of application code, not perch, stdlib or installed packages."""
    if filename.startswith("<") or "site-packages" in filename:
        return False
    return not filename.startswith((_STDLIB_DIR, _PERCH_DIR))


def _app_frames(exc: BaseException) -> list[_traceback.FrameSummary]:
    frames = _traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    return [f for f in frames if _is_app_frame(f.filename)] or frames[-3:]


def _cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    return None if exc.__suppress_context__ else exc.__context__


def format_compact_traceback(exc: BaseException) -> str:
    """Error summary plus the last few application frames.

    Framework frames are hidden. A chained cause is summarised on a
    ``Caused by`` line after the trace.
    """
    lines = [f"{type(exc).__name__}: {exc}"]
    frames = _app_frames(exc)[-MAX_FRAMES:]
    if frames:
        lines.append("  Trace (app frames):")
    for i, frame in enumerate(frames):
        lines.append(f"    #{i} {frame.filename}({frame.lineno}): {frame.name}()")
        if frame.line:
            lines.append(f"      {frame.line.strip()}")

    cause = _cause(exc)
    if cause is not None:
        lines.append(f"  Caused by {type(cause).__name__}: {cause}")
    return "\n".join(lines)


def format_minimal_error(exc: BaseException) -> str:
    """One line: the error located at its innermost application frame."""
    frames = _app_frames(exc)
    location = f" at {frames[-1].filename}:{frames[-1].lineno}" if frames else ""
    return f"{type(exc).__name__}{location}: {exc}"


class ErrorHandler(Component):
    """Report uncaught exceptions through logging.

    Options:
        traceback: ``compact``, ``full`` or ``minimal``. Defaults to the
            ``PERCH_TRACEBACK`` environment variable, then ``compact``.
    """

    traceback: str | None = None

    _previous_hook: object = None

    @property
    def style(self) -> str:
        return (self.traceback or os.environ.get("PERCH_TRACEBACK", "compact")).lower()

    def install(self) -> None:
        """Become ``sys.excepthook``, remembering the previous hook."""
        if sys.excepthook != self.handle_exception:
            self._previous_hook = sys.excepthook
            sys.excepthook = self.handle_exception

    def uninstall(self) -> None:
        if sys.excepthook == self.handle_exception:
            sys.excepthook = self._previous_hook or sys.__excepthook__  # type: ignore[assignment]

    def handle_exception(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        """``sys.excepthook``-compatible entry point."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        self.report(exc.with_traceback(tb))

    def report(self, exc: BaseException) -> None:
        """Log *exc* according to its type and the traceback style."""
        if isinstance(exc, HTTPError):
            logger.debug("%d %s", exc.status, exc.detail)
            return

        style = self.style
        if style == "full":
            logger.error("Unhandled error", exc_info=exc)
        elif style == "minimal":
            logger.error("Unhandled error: %s", format_minimal_error(exc))
        else:
            logger.error("Unhandled error\n%s", format_compact_traceback(exc))
