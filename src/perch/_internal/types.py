"""Shared type aliases used across perch modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Signal handler: receives the sender plus keyword payload
SignalHandler: TypeAlias = Callable[..., Any]

# Module factory: builds a module from (id, parent, **options)
ModuleFactory: TypeAlias = Callable[..., Any]
