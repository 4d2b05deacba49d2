"""Application component base class.

Components are the services a ``ServiceLocator`` builds on demand. Any
class can be registered as a component; deriving from ``Component`` adds
two hooks the locator calls after construction:

- ``attach(app)`` receives the owning application (explicit context,
  there is no global "current app").
- ``init()`` runs once the component is attached.

Options are declared as class attributes and passed as keywords::

    class Mailer(Component):
        host: str = "localhost"
        port: int = 25

    locator.set("mail", {"class": Mailer, "port": 2525})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from perch.modules.base import BaseModule


class Component:
    """Base class for locator-managed services."""

    app: BaseModule | None = None

    def __init__(self, **options: Any) -> None:
        for key, value in options.items():
            if key.startswith("_") or not hasattr(type(self), key):
                msg = f"{type(self).__name__} has no option {key!r}"
                raise TypeError(msg)
            setattr(self, key, value)

    def attach(self, app: BaseModule) -> None:
        """Bind the component to the application that owns it."""
        self.app = app

    def init(self) -> None:
        """Hook called after ``attach()``. Does nothing by default."""
