"""Object factory: builds components and modules from configuration.

A configuration is a mapping with a reserved ``class`` key and an optional
``enabled`` flag. Every other key is passed to the constructor as a
keyword argument::

    create_object({"class": "myapp.mail:Mailer", "host": "smtp.local"})

``class`` may be a class (or any callable) or an import string in either
``"package.module:Attribute"`` or ``"package.module.Attribute"`` form.
"""

import importlib
from collections.abc import Mapping
from typing import Any

from perch.errors import InstantiationError

RESERVED_KEYS: frozenset[str] = frozenset({"class", "enabled"})


def resolve_class(target: Any) -> Any:
    """Return the callable named by *target*.

    Non-string targets are returned unchanged. Raises
    ``InstantiationError`` if the import string cannot be resolved.
    """
    if not isinstance(target, str):
        return target

    module_path, sep, attr_path = target.partition(":")
    if not sep:
        module_path, _, attr_path = target.rpartition(".")
    if not module_path or not attr_path:
        raise InstantiationError(target, "expected 'module:Attribute' or 'module.Attribute'")

    try:
        obj: Any = importlib.import_module(module_path)
        for attr in attr_path.split("."):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError) as exc:
        raise InstantiationError(target, str(exc)) from exc
    return obj


def class_name(target: Any) -> str:
    """Canonical dotted name for a class or import string.

    ``"pkg.mod:Cls"`` and ``pkg.mod.Cls`` both become ``"pkg.mod.Cls"`` so
    configured classes can be compared without importing them.
    """
    if isinstance(target, str):
        return target.replace(":", ".").lstrip(".")
    return f"{target.__module__}.{target.__qualname__}"


def is_enabled(config: Mapping[str, Any]) -> bool:
    return bool(config.get("enabled", True))


def options_of(config: Mapping[str, Any]) -> dict[str, Any]:
    """The keyword options of *config* (everything but ``class``/``enabled``)."""
    return {k: v for k, v in config.items() if k not in RESERVED_KEYS}


def create_object(config: Mapping[str, Any], *args: Any, **extra: Any) -> Any:
    """Instantiate the class named by ``config["class"]``.

    Positional *args* and *extra* keywords come first; the config options
    follow and win on conflicts.

    Raises:
        InstantiationError: If ``class`` is missing, cannot be imported,
            or the constructor raises.
    """
    if "class" not in config:
        raise InstantiationError(dict(config), "configuration has no 'class' key")

    target = config["class"]
    cls = resolve_class(target)
    kwargs = {**extra, **options_of(config)}
    try:
        return cls(*args, **kwargs)
    except InstantiationError:
        raise
    except Exception as exc:
        raise InstantiationError(target, f"{type(exc).__name__}: {exc}") from exc


def configure(obj: Any, options: Mapping[str, Any]) -> None:
    """Assign *options* onto *obj* one attribute at a time.

    Assignments are applied in order and are not rolled back: if one
    fails, the earlier ones stay applied and ``InstantiationError`` is
    raised for the failing key.
    """
    for key, value in options.items():
        if key in RESERVED_KEYS:
            continue
        try:
            setattr(obj, key, value)
        except Exception as exc:
            detail = f"cannot set {key!r}: {type(exc).__name__}: {exc}"
            raise InstantiationError(type(obj), detail) from exc
