"""Global state: a small key/value map that survives across runs.

``GlobalStateStore`` loads the whole map from a ``StatePersister`` on first
access, tracks whether anything changed, and asks its owner to schedule a
single flush the moment it goes from clean to dirty. The application
schedules that flush on the ``"end"`` signal, so however many keys change
during a run the persister is written at most once.

``StatePersister`` is the default persistence backend: a JSON file in the
application runtime directory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from perch.component import Component
from perch.errors import ConfigurationError

logger = logging.getLogger("perch.state")

STATE_FILENAME = "state.json"


def _same(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


class StatePersister(Component):
    """Persist global state as JSON.

    Options:
        state_file: Path of the JSON file. Defaults to
            ``<runtime_path>/state.json`` of the owning application.
    """

    state_file: str | Path | None = None

    def init(self) -> None:
        if self.state_file is None:
            if self.app is None:
                msg = "StatePersister needs either 'state_file' or an owning application"
                raise ConfigurationError(msg)
            self.state_file = Path(self.app.runtime_path) / STATE_FILENAME

    @property
    def path(self) -> Path:
        if self.state_file is None:
            self.init()
        return Path(self.state_file)  # type: ignore[arg-type]

    def load(self) -> dict[str, Any] | None:
        """Read the stored map, or ``None`` when nothing was saved yet."""
        path = self.path
        if not path.is_file():
            return None
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            msg = f"Global state file {str(path)!r} does not contain a JSON object"
            raise ConfigurationError(msg)
        return data

    def save(self, state: dict[str, Any]) -> None:
        """Write *state* atomically (temp file + rename)."""
        path = self.path
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, sort_keys=True)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d global state keys to %s", len(state), path)


class GlobalStateStore:
    """Dirty-tracked view over the persisted global state.

    Args:
        persister: Zero-argument callable returning the persister. Called
            lazily, on first access.
        schedule_flush: Called with ``self.flush`` each time the store
            goes from clean to dirty.
    """

    __slots__ = ("_data", "_dirty", "_persister", "_schedule_flush")

    def __init__(
        self,
        persister: Callable[[], Any],
        schedule_flush: Callable[[Callable[[], None]], None],
    ) -> None:
        self._persister = persister
        self._schedule_flush = schedule_flush
        self._data: dict[str, Any] | None = None
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def loaded(self) -> bool:
        return self._data is not None

    def load(self) -> None:
        """(Re)load the whole map from the persister and mark it clean."""
        data = self._persister().load()
        self._data = dict(data) if data is not None else {}
        self._dirty = False

    def _state(self) -> dict[str, Any]:
        if self._data is None:
            self.load()
        assert self._data is not None
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._state().get(key, default)

    def all(self) -> dict[str, Any]:
        return dict(self._state())

    def set(self, key: str, value: Any, default: Any = None) -> None:
        """Store *value* under *key*.

        Setting a key to its *default* removes it, so the stored map only
        ever holds non-default values. A key that is absent already reads
        as *default*, so setting it to *default* changes nothing. Values
        only match when their types match too: ``0`` is not ``False``.
        """
        state = self._state()
        was_dirty = self._dirty

        if _same(value, default):
            if key in state:
                del state[key]
                self._dirty = True
        elif key not in state or not _same(state[key], value):
            state[key] = value
            self._dirty = True

        if self._dirty and not was_dirty:
            self._schedule_flush(self.flush)

    def clear(self, key: str) -> None:
        """Remove *key* whatever its stored value."""
        self.set(key, True, True)

    def flush(self) -> None:
        """Save the map if it changed since the last load or flush."""
        if not self._dirty or self._data is None:
            return
        self._persister().save(self._data)
        self._dirty = False
