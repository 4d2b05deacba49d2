"""Route parameter converters.

A converter pairs the regex a ``{name:type}`` segment matches with the
functions that turn the captured text into a Python value and back::

    CONVERTERS["int"].to_python("42")   # 42
    CONVERTERS["int"].to_url(42)        # "42"

``UrlManager`` starts from ``CONVERTERS`` and accepts extra converters
per instance through its ``converters`` option.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote


def _segment_to_url(value: Any) -> str:
    return quote(str(value), safe="")


def _path_to_url(value: Any) -> str:
    return quote(str(value), safe="/")


@dataclass(frozen=True, slots=True)
class Converter:
    regex: str
    to_python: Callable[[str], Any] = str
    to_url: Callable[[Any], str] = _segment_to_url


CONVERTERS: Mapping[str, Converter] = {
    "str": Converter(r"[^/]+"),
    "int": Converter(r"\d+", int),
    "float": Converter(r"\d+(?:\.\d+)?", float),
    "slug": Converter(r"[A-Za-z0-9]+(?:[-_][A-Za-z0-9]+)*"),
    "path": Converter(r".+", to_url=_path_to_url),
}


def convert_param(value: str, converter: Converter) -> Any:
    """Turn a captured segment into its Python value.

    Raises ``ValueError`` if the converter rejects the text.
    """
    return converter.to_python(value)


def format_param(value: Any, converter: Converter) -> str:
    """Render *value* as a URL segment, percent-encoding reserved characters."""
    return converter.to_url(value)
