"""Module base classes.

``BaseModule`` is what the application and every module have in common:
a component locator, a child module registry, a parameter dict and
keyword configuration. ``Module`` is the base class for user modules::

    class BlogModule(Module):
        posts_per_page = 10

        def init(self):
            self.set_component("feed", {"class": "blog.feed:FeedBuilder"})

    app = Application({"modules": {"blog": {"class": BlogModule, "posts_per_page": 5}}})
    app.get_module("blog").posts_per_page   # 5

A module's ``parent`` is a plain back-reference used for upward lookups
(``Application.find_module``); it never owns or outlives anything.
"""

from __future__ import annotations

import inspect
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from perch.di.locator import ServiceLocator
from perch.errors import ConfigurationError
from perch.modules.registry import ModuleRegistry

if TYPE_CHECKING:
    from perch.app import Application


class BaseModule(ABC):
    """Shared behaviour of the application and its modules."""

    def __init__(self, id: str | None = None, parent: BaseModule | None = None) -> None:
        self._id = id
        self._parent = parent
        self._params: dict[str, Any] = {}
        self._locator = ServiceLocator(context=self.app)
        self._modules = ModuleRegistry(self)

    # -- Identity --

    @property
    def id(self) -> str:
        return self._id or ""

    @id.setter
    def id(self, value: str) -> None:
        self._id = value

    @property
    @abstractmethod
    def app(self) -> Application | None:
        """The owning application."""

    @property
    def is_root(self) -> bool:
        """True for the application itself."""
        return self.app is self

    @property
    @abstractmethod
    def module_path(self) -> str:
        """Directory holding this object's child module packages."""

    def get_parent_module(self) -> BaseModule | None:
        return self._parent

    # -- Configuration --

    def configure(self, properties: Mapping[str, Any]) -> None:
        """Assign configuration keys onto this object.

        A ``set_<key>()`` method wins over plain attribute assignment.
        Keys matching neither a setter nor an existing public attribute
        raise ``ConfigurationError``.
        """
        for key, value in properties.items():
            setter = getattr(self, f"set_{key}", None)
            if callable(setter):
                setter(value)
            elif not key.startswith("_") and (hasattr(type(self), key) or key in vars(self)):
                setattr(self, key, value)
            else:
                msg = f"{type(self).__name__} has no configurable property {key!r}"
                raise ConfigurationError(msg)

    # -- Params --

    @property
    def params(self) -> dict[str, Any]:
        return self._params

    def get_params(self) -> dict[str, Any]:
        return self._params

    def set_params(self, value: Mapping[str, Any]) -> None:
        """Add *value* to the parameters (existing keys are overwritten)."""
        self._params.update(value)

    # -- Components --

    @property
    def locator(self) -> ServiceLocator:
        return self._locator

    def has_component(self, id: str) -> bool:
        return self._locator.has(id)

    def get_component(self, id: str, create: bool = True) -> Any:
        return self._locator.get(id, create=create)

    def set_component(self, id: str, component: Any, merge: bool = True) -> None:
        self._locator.set(id, component, merge=merge)

    def set_components(self, components: Mapping[str, Any], merge: bool = True) -> None:
        self._locator.set_components(components, merge=merge)

    def get_components(self, loaded_only: bool = True) -> dict[str, Any]:
        return self._locator.get_components(include_pending=not loaded_only)

    # -- Modules --

    @property
    def module_registry(self) -> ModuleRegistry:
        return self._modules

    def has_module(self, id: str) -> bool:
        return self._modules.has_module(id)

    def get_module(self, id: str) -> Any:
        return self._modules.get_module(id)

    def get_modules(self) -> dict[str, dict[str, Any]]:
        return self._modules.get_modules()

    def set_modules(self, modules: Mapping[str, Any] | Iterable[Any]) -> None:
        self._modules.set_modules(modules)


class Module(BaseModule):
    """Base class for application modules.

    Built by the owning registry as ``cls(id, parent, app=app, **options)``.
    ``components``, ``modules`` and ``params`` options configure the
    module's own registries; other options are attribute assignments.
    """

    name: str = ""
    version: str = "1.0"
    description: str = ""

    def __init__(
        self,
        id: str,
        parent: BaseModule | None = None,
        *,
        app: Application | None = None,
        **options: Any,
    ) -> None:
        self._app = app
        self._base_path: str | None = None
        self._module_path: str | None = None
        super().__init__(id, parent)
        self.configure(options)
        self._modules.resolve_factories()
        self.init()

    @classmethod
    def pre_configure(cls) -> None:
        """Hook run on the class during application bootstrap.

        Runs before ``Application.init()`` and before any instance of the
        module exists.
        """

    def init(self) -> None:
        """Hook run once the module is configured."""

    @property
    def app(self) -> Application | None:
        return self._app

    @property
    def base_path(self) -> str:
        """Directory holding the module's class file unless set explicitly."""
        if self._base_path is None:
            self._base_path = os.path.dirname(os.path.abspath(inspect.getfile(type(self))))
        return self._base_path

    @base_path.setter
    def base_path(self, value: str) -> None:
        path = os.path.realpath(value)
        if not os.path.isdir(path):
            msg = f'The module base path "{value}" is not a valid directory.'
            raise ConfigurationError(msg)
        self._base_path = path

    @property
    def module_path(self) -> str:
        if self._module_path is None:
            self._module_path = os.path.join(self.base_path, "Modules")
        return self._module_path

    @module_path.setter
    def module_path(self, value: str) -> None:
        path = os.path.realpath(value)
        if not os.path.isdir(path):
            msg = f'The module path "{value}" is not a valid directory.'
            raise ConfigurationError(msg)
        self._module_path = path

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id!r}>"
