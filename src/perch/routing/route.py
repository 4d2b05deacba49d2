"""Route and ControllerTarget frozen dataclasses."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ControllerTarget:
    """A controller action to dispatch to.

    ``controller`` is a class or an import string. ``module``, when set,
    names the module that owns the controller; it is looked up with
    ``Application.find_module()`` at dispatch time.
    """

    controller: Any
    action: str
    module: str | None = None


@dataclass(frozen=True, slots=True)
class Route:
    """Result of resolving a request.

    ``handler`` is either a plain callable, invoked with the request, or a
    ``ControllerTarget``. ``params`` are merged into the request query,
    winning on key conflicts.
    """

    handler: Any
    params: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_callable(self) -> bool:
        return not isinstance(self.handler, ControllerTarget) and callable(self.handler)
