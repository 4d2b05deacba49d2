"""Path aliases.

An alias is a short root name for a directory (``App``, ``Modules``,
``www``). Dotted names resolve below the root::

    aliases = Aliases()
    aliases.set("App", "/srv/app")
    aliases.get("App.runtime.users")   # "/srv/app/runtime/users"
    aliases.get("Unknown.thing")       # None

The table belongs to the application instance; nothing is process-global.
"""

import os
from collections.abc import Iterator, Mapping


class Aliases:
    """Mutable mapping of alias roots to absolute paths."""

    __slots__ = ("_paths",)

    def __init__(self, paths: Mapping[str, str] | None = None) -> None:
        self._paths: dict[str, str] = {}
        for name, path in (paths or {}).items():
            self.set(name, path)

    def __contains__(self, name: str) -> bool:
        return name in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def set(self, name: str, path: str | os.PathLike[str] | None) -> None:
        """Bind *name* to *path*. ``None`` removes the alias."""
        if path is None:
            self._paths.pop(name, None)
            return
        self._paths[name] = os.fspath(path).rstrip("/\\") or os.sep

    def get(self, alias: str) -> str | None:
        """Resolve *alias* to a path, or ``None`` if its root is unknown."""
        if alias in self._paths:
            return self._paths[alias]
        root, _, rest = alias.partition(".")
        if not rest or root not in self._paths:
            return None
        return os.path.join(self._paths[root], *rest.split("."))

    def update(self, mappings: Mapping[str, str]) -> None:
        """Add aliases whose values may themselves be aliases.

        A value that resolves through an existing alias is stored as the
        resolved path; anything else is stored literally.
        """
        for name, value in mappings.items():
            self.set(name, self.get(value) or value)

    def as_dict(self) -> dict[str, str]:
        return dict(self._paths)
