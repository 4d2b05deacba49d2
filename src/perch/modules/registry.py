"""Hierarchical module registry.

Every application and every module owns one ``ModuleRegistry``. The
registry keeps the configuration of its child modules and builds each one
the first time it is asked for. Identity is a per-registry singleton keyed
by the normalized id (``"user"`` and ``"User"`` are the same module), and
the first instantiation is final: configuration changes made afterwards
do not rebuild the module.

Module classes are resolved to factories explicitly, either through
``register_factory()`` or from the ``class`` key when
``resolve_factories()`` runs during bootstrap. Bare ids fall back to
``default_module_class()``, the naming convention helper. That class is
loaded from ``<module_path>/<Id>/__init__.py`` of the owner, so the
application directory never has to be on ``sys.path``.
"""

from __future__ import annotations

import importlib.util
import logging
import os
import sys
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from perch._internal.factory import create_object, is_enabled, options_of, resolve_class
from perch._internal.merge import deep_merge
from perch._internal.types import ModuleFactory
from perch.errors import ConfigurationError, InstantiationError

if TYPE_CHECKING:
    from perch.modules.base import BaseModule

logger = logging.getLogger("perch.modules")


def normalize_id(id: str) -> str:
    """Canonical module id: first letter upper-cased (``"user"`` -> ``"User"``)."""
    return id[:1].upper() + id[1:]


def default_module_class(id: str) -> str:
    """Import string of the conventional module class for *id*.

    ``"user"`` -> ``"Modules.User:UserModule"``, i.e. a ``UserModule``
    class exported by the ``User`` package in the owner's module path.
    """
    name = normalize_id(id)
    return f"Modules.{name}:{name}Module"


class ModuleRegistry:
    """Lazily instantiated child modules of one owner.

    Args:
        owner: The application or module that owns this registry. The
            owner is passed as ``parent`` to child modules unless it is the
            root application, in which case children get ``None``.
    """

    __slots__ = ("_configs", "_factories", "_instances", "_owner")

    def __init__(self, owner: BaseModule) -> None:
        self._owner = owner
        self._configs: dict[str, dict[str, Any]] = {}
        self._factories: dict[str, ModuleFactory] = {}
        self._instances: dict[str, Any] = {}

    def __contains__(self, id: str) -> bool:
        return self.has_module(id)

    def has_module(self, id: str) -> bool:
        nid = normalize_id(id)
        return nid in self._configs or nid in self._instances

    def get_modules(self) -> dict[str, dict[str, Any]]:
        """Configured modules, keyed by normalized id."""
        return {nid: dict(config) for nid, config in self._configs.items()}

    def loaded(self) -> dict[str, Any]:
        """Modules instantiated so far."""
        return dict(self._instances)

    def register_factory(self, id: str, factory: ModuleFactory) -> None:
        """Bind *id* to an explicit factory (usually a ``Module`` subclass)."""
        nid = normalize_id(id)
        self._factories[nid] = factory
        self._configs.setdefault(nid, {"class": factory})

    def set_modules(self, entries: Mapping[str, Any] | Iterable[Any]) -> None:
        """Add or merge module configuration.

        *entries* is either a mapping of ``id -> config`` or an iterable
        whose items are bare ids or ``(id, config)`` pairs. A config may be
        a mapping, a class, or an import string. Entries without a
        ``class`` get the conventional one and a path alias named after
        the module.
        """
        for id, raw in _iter_entries(entries):
            nid = normalize_id(id)
            config = self._as_config(nid, raw)
            existing = self._configs.get(nid)
            if "class" in config:
                self._factories.pop(nid, None)
            elif existing is None or "class" not in existing:
                config["class"] = default_module_class(nid)
                app = self._owner.app
                if app is not None:
                    app.aliases.set(nid, os.path.join(self._owner.module_path, nid))

            self._configs[nid] = deep_merge(existing, config) if existing else config

    def resolve_factories(self) -> None:
        """Resolve the class of every enabled module and run its
        ``pre_configure()`` hook.

        Called once during bootstrap so missing module classes fail
        before any request is processed.
        """
        for nid, config in self._configs.items():
            if not is_enabled(config):
                continue
            factory = self._factory(nid, config)
            hook = getattr(factory, "pre_configure", None)
            if callable(hook):
                hook()

    def get_module(self, id: str) -> Any:
        """Return the module *id*, building it on first access.

        Returns ``None`` for unknown or disabled modules.

        Raises:
            InstantiationError: If the module class cannot be built.
        """
        nid = normalize_id(id)
        if nid in self._instances:
            return self._instances[nid]

        config = self._configs.get(nid)
        if config is None or not is_enabled(config):
            return None

        owner = self._owner
        if owner.is_root:
            module_id, parent = nid, None
        else:
            module_id, parent = f"{owner.id}/{nid}", owner

        logger.debug('Loading "%s" module', module_id)
        factory = self._factory(nid, config)
        module = create_object(
            {"class": factory, **options_of(config)},
            module_id,
            parent,
            app=owner.app,
        )
        self._instances[nid] = module
        return module

    def _factory(self, nid: str, config: Mapping[str, Any]) -> ModuleFactory:
        factory = self._factories.get(nid)
        if factory is None:
            if "class" not in config:
                raise InstantiationError(nid, "module configuration has no 'class' key")
            if config["class"] == default_module_class(nid):
                factory = self._load_conventional(nid)
            else:
                factory = resolve_class(config["class"])
            self._factories[nid] = factory
        return factory

    def _load_conventional(self, nid: str) -> ModuleFactory:
        target = default_module_class(nid)
        package_dir = os.path.join(self._owner.module_path, nid)
        init_file = os.path.join(package_dir, "__init__.py")
        name = _package_name(self._owner, nid)

        module = sys.modules.get(name)
        if module is None or getattr(module, "__file__", None) != init_file:
            if not os.path.isfile(init_file):
                raise InstantiationError(target, f"no module package at {package_dir}")
            spec = importlib.util.spec_from_file_location(
                name, init_file, submodule_search_locations=[package_dir]
            )
            assert spec is not None and spec.loader is not None
            module = importlib.util.module_from_spec(spec)
            sys.modules[name] = module
            try:
                spec.loader.exec_module(module)
            except Exception as exc:
                del sys.modules[name]
                raise InstantiationError(target, f"{type(exc).__name__}: {exc}") from exc

        try:
            return getattr(module, f"{nid}Module")
        except AttributeError as exc:
            raise InstantiationError(target, str(exc)) from exc

    @staticmethod
    def _as_config(nid: str, raw: Any) -> dict[str, Any]:
        if raw is None:
            return {}
        if isinstance(raw, Mapping):
            return dict(raw)
        if isinstance(raw, str) or callable(raw):
            return {"class": raw}
        msg = f"Invalid configuration for module {nid!r}: {raw!r}"
        raise ConfigurationError(msg)


def _package_name(owner: BaseModule, nid: str) -> str:
    """``Modules.Forum`` for a top-level module, ``Modules.Blog.Comments`` below one."""
    parts = [] if owner.is_root else owner.id.split("/")
    return ".".join(["Modules", *parts, nid])


def _iter_entries(entries: Mapping[str, Any] | Iterable[Any]) -> Iterable[tuple[str, Any]]:
    if isinstance(entries, Mapping):
        yield from entries.items()
        return
    for entry in entries:
        if isinstance(entry, str):
            yield entry, None
        else:
            id, raw = entry
            yield id, raw
