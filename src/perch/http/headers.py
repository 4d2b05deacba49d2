"""Case-insensitive HTTP headers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

# CGI keys carrying headers without the HTTP_ prefix
_UNPREFIXED = frozenset({"CONTENT_TYPE", "CONTENT_LENGTH"})


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive HTTP headers.

    Built from a mapping or from ``(name, value)`` pairs. Names are
    lower-cased on the way in; ``__getitem__`` returns the first value.
    """

    __slots__ = ("_pairs",)

    def __init__(self, raw: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        pairs = raw.items() if isinstance(raw, Mapping) else raw
        self._pairs: tuple[tuple[str, str], ...] = tuple(
            (name.lower(), value) for name, value in pairs
        )

    def __getitem__(self, key: str) -> str:
        key_lower = key.lower()
        for name, value in self._pairs:
            if name == key_lower:
                return value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        key_lower = key.lower()
        return any(name == key_lower for name, _ in self._pairs)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._pairs:
            if name not in seen:
                seen.add(name)
                yield name

    def __len__(self) -> int:
        return len(set(self))

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"Headers({{{items}}})"

    @classmethod
    def from_environ(cls, environ: Mapping[str, Any]) -> Headers:
        """Collect headers from a WSGI environ.

        ``HTTP_X_REQUESTED_WITH`` becomes ``x-requested-with``.
        ``CONTENT_TYPE`` and ``CONTENT_LENGTH`` are included when non-empty.
        """
        pairs: list[tuple[str, str]] = []
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                pairs.append((key[5:].replace("_", "-"), value))
            elif key in _UNPREFIXED and value:
                pairs.append((key.replace("_", "-"), value))
        return cls(pairs)

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        key_lower = key.lower()
        return [value for name, value in self._pairs if name == key_lower]
