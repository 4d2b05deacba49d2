"""Lazy service locator.

Each component id maps to exactly one entry, either *pending* (a
configuration waiting to be built) or *resolved* (a live instance).
``get()`` turns a pending entry into a resolved one the first time it is
asked for; later calls return the same instance.

Reconfiguring a resolved component with the same class updates the live
instance in place. Switching to a different class throws the instance
away and starts a new pending generation.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

from perch._internal.factory import class_name, configure, create_object, is_enabled
from perch._internal.merge import deep_merge
from perch.component import Component
from perch.errors import InstantiationError

logger = logging.getLogger("perch.di")


@dataclass(slots=True)
class Pending:
    """A component configuration that has not been instantiated yet."""

    config: dict[str, Any]


@dataclass(slots=True)
class Resolved:
    """A live component instance."""

    instance: Any


ComponentEntry: TypeAlias = Pending | Resolved


class ServiceLocator:
    """Registry mapping component ids to pending configs or live instances.

    Usage::

        locator = ServiceLocator(context=app)
        locator.set("mail", {"class": "myapp.mail:Mailer", "port": 2525})
        locator.has("mail")   # True, nothing built yet
        mailer = locator.get("mail")
        assert locator.get("mail") is mailer

    *context* is handed to ``Component.attach()`` for every component
    the locator builds or receives.
    """

    __slots__ = ("_context", "_entries")

    def __init__(self, context: Any = None) -> None:
        self._context = context
        self._entries: dict[str, ComponentEntry] = {}

    def __contains__(self, id: str) -> bool:
        return id in self._entries

    def has(self, id: str) -> bool:
        """True if *id* is registered, whether or not it has been built."""
        return id in self._entries

    def is_resolved(self, id: str) -> bool:
        return isinstance(self._entries.get(id), Resolved)

    def get(self, id: str, create: bool = True) -> Any:
        """Return the component registered under *id*.

        A pending, enabled entry is built when *create* is true. Disabled
        and unknown ids return ``None``.

        Raises:
            InstantiationError: If the configured class cannot be built.
        """
        entry = self._entries.get(id)
        if entry is None:
            return None
        if isinstance(entry, Resolved):
            return entry.instance
        if not create or not is_enabled(entry.config):
            return None

        logger.debug('Loading "%s" application component', id)
        instance = create_object(entry.config)
        if isinstance(instance, Component):
            try:
                self._attach(instance)
                instance.init()
            except Exception as exc:
                raise InstantiationError(
                    entry.config["class"], f"{type(exc).__name__}: {exc}"
                ) from exc
        self._entries[id] = Resolved(instance)
        return instance

    def set(self, id: str, value: Any, merge: bool = True) -> None:
        """Register, reconfigure or remove a component.

        - ``None`` removes the entry.
        - A mapping is a configuration (see module docstring for how it
          combines with an existing entry).
        - Anything else is stored as the live instance.
        """
        if value is None:
            self.clear(id)
            return

        if not isinstance(value, Mapping):
            if isinstance(value, Component):
                self._attach(value)
            self._entries[id] = Resolved(value)
            return

        config = dict(value)
        entry = self._entries.get(id)

        if isinstance(entry, Resolved):
            if "class" in config and class_name(config["class"]) != class_name(
                type(entry.instance)
            ):
                logger.debug('Replacing "%s" component with %s', id, class_name(config["class"]))
                self._entries[id] = Pending(config)
                return
            configure(entry.instance, config)
            return

        if isinstance(entry, Pending):
            old_class = entry.config.get("class")
            new_class = config.get("class")
            if old_class is not None and new_class is not None and (
                class_name(old_class) != class_name(new_class)
            ):
                self._entries[id] = Pending(config)
                return
            if merge:
                config = deep_merge(entry.config, config)

        self._entries[id] = Pending(config)

    def set_components(self, components: Mapping[str, Any], merge: bool = True) -> None:
        for id, value in components.items():
            self.set(id, value, merge=merge)

    def clear(self, id: str) -> None:
        """Forget *id* entirely. Unknown ids are ignored."""
        self._entries.pop(id, None)

    def get_components(self, include_pending: bool = False) -> dict[str, Any]:
        """Live instances, plus raw configs of pending entries if requested."""
        components: dict[str, Any] = {}
        for id, entry in self._entries.items():
            if isinstance(entry, Resolved):
                components[id] = entry.instance
            elif include_pending:
                components[id] = entry.config
        return components

    def _attach(self, component: Component) -> None:
        if component.app is None and self._context is not None:
            component.attach(self._context)
