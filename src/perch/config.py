"""Application configuration.

AppConfig is a frozen dataclass holding the reserved bootstrap keys. Any
other key from the input mapping lands in ``properties`` and is assigned
onto the application after the core components are registered.

    config = AppConfig.from_mapping({
        "base_path": "/srv/app",
        "components": {"mail": {"class": "myapp.mail:Mailer"}},
        "params": {"admin_email": "admin@example.com"},
        "name": "Shop",
    })
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from perch.errors import ConfigurationError

# Spellings accepted for the reserved keys, mapped to the field name
_RESERVED_ALIASES: dict[str, str] = {
    "basePath": "base_path",
    "webPath": "web_path",
    "errorHandler": "error_handler",
}


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Bootstrap configuration. Immutable after creation.

    All fields are optional::

        config = AppConfig(base_path="/srv/app", params={"foo": "bar"})
    """

    # Paths
    base_path: str | Path | None = None  # Defaults to the working directory
    web_path: str | Path | None = None  # Defaults to the directory of sys.argv[0]
    aliases: Mapping[str, str] = field(default_factory=dict)

    # Error handler component config, merged over the default handler
    error_handler: Mapping[str, Any] = field(default_factory=dict)

    # Component ids to build eagerly during bootstrap
    preload: tuple[str, ...] = ()

    # Locale settings (language, source language, ...)
    locale: Mapping[str, Any] = field(default_factory=dict)

    # Registries
    modules: Mapping[str, Any] | tuple[Any, ...] = field(default_factory=dict)
    components: Mapping[str, Any] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)

    # Everything else: attribute assignments on the application
    properties: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AppConfig:
        """Split a raw configuration mapping into reserved keys and properties."""
        names = {f.name for f in fields(cls)} - {"properties"}
        reserved: dict[str, Any] = {}
        properties: dict[str, Any] = {}
        for key, value in data.items():
            name = _RESERVED_ALIASES.get(key, key)
            if name in names:
                reserved[name] = value
            else:
                properties[key] = value

        if "preload" in reserved:
            reserved["preload"] = tuple(reserved["preload"])
        modules = reserved.get("modules")
        if modules is not None and not isinstance(modules, Mapping):
            reserved["modules"] = tuple(modules)
        return cls(**reserved, properties=properties)

    @classmethod
    def load(cls, path: str | Path) -> AppConfig:
        """Read a ``.json`` or ``.toml`` configuration file.

        Relative ``base_path`` / ``web_path`` values are resolved against
        the directory holding the file.
        """
        path = Path(path)
        try:
            if path.suffix == ".toml":
                with path.open("rb") as fh:
                    data: Any = tomllib.load(fh)
            elif path.suffix == ".json":
                with path.open(encoding="utf-8") as fh:
                    data = json.load(fh)
            else:
                msg = f"Unsupported configuration file type: {str(path)!r}"
                raise ConfigurationError(msg)
        except OSError as exc:
            msg = f"Cannot read configuration file {str(path)!r}: {exc}"
            raise ConfigurationError(msg) from exc
        except ValueError as exc:
            msg = f"Invalid configuration file {str(path)!r}: {exc}"
            raise ConfigurationError(msg) from exc

        if not isinstance(data, dict):
            msg = f"Configuration file {str(path)!r} must contain a table/object"
            raise ConfigurationError(msg)

        for key in ("base_path", "basePath", "web_path", "webPath"):
            if isinstance(data.get(key), str) and not Path(data[key]).is_absolute():
                data[key] = str(path.parent / data[key])
        return cls.from_mapping(data)
