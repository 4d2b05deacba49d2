"""Default URL manager: an ordered table of path patterns.

Patterns use ``{name}`` segments, optionally typed with a converter from
``perch.routing.params`` (``{id:int}``, ``{title:slug}``, ``{rest:path}``) or
one passed in the ``converters`` option.
Rules are tried in registration order; the first match wins::

    urls = UrlManager(routes=[
        {"pattern": "/", "handler": (SiteController, "index"), "name": "home"},
        {"pattern": "/posts/{id:int}", "handler": (PostController, "view")},
        {"pattern": "/ping", "handler": ping, "methods": ["GET"]},
    ])
    route = urls.parse_url(request)   # Route(handler, {"id": 42}) or None

A handler is a plain callable, a ``ControllerTarget``, a
``(controller, action)`` / ``(controller, action, module)`` tuple, or an
import string naming a callable.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

from perch._internal.factory import resolve_class
from perch.component import Component
from perch.errors import ConfigurationError
from perch.routing.params import CONVERTERS, Converter, convert_param, format_param
from perch.routing.route import ControllerTarget, Route

_SEGMENT_PARAM = re.compile(r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<type>\w+))?\}$")


@dataclass(frozen=True, slots=True)
class UrlRule:
    """A compiled URL pattern."""

    pattern: str
    handler: Any
    regex: re.Pattern[str]
    converters: Mapping[str, Converter]
    methods: frozenset[str] | None = None
    name: str | None = None
    defaults: Mapping[str, Any] = field(default_factory=dict)


def compile_pattern(
    pattern: str,
    case_sensitive: bool = True,
    converters: Mapping[str, Converter] = CONVERTERS,
) -> tuple[re.Pattern[str], dict[str, Converter]]:
    """Compile a route pattern into a regex and the converter of each parameter.

    Examples::

        "/users"            -> ^/users$
        "/users/{id:int}"   -> ^/users/(?P<id>\\d+)$
        "/files/{p:path}"   -> ^/files/(?P<p>.+)$
    """
    parts: list[str] = []
    params: dict[str, Converter] = {}
    for segment in pattern.strip("/").split("/"):
        if not segment:
            continue
        match = _SEGMENT_PARAM.match(segment)
        if match is None:
            parts.append(re.escape(segment))
            continue
        name, param_type = match["name"], match["type"] or "str"
        converter = converters.get(param_type)
        if converter is None:
            msg = f"Unknown converter {param_type!r} in route pattern {pattern!r}"
            raise ConfigurationError(msg)
        if name in params:
            msg = f"Duplicate parameter {name!r} in route pattern {pattern!r}"
            raise ConfigurationError(msg)
        params[name] = converter
        parts.append(f"(?P<{name}>{converter.regex})")

    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile("/" + "/".join(parts), flags), params


def normalize_handler(handler: Any) -> Any:
    """Turn the accepted handler spellings into a callable or ControllerTarget."""
    if isinstance(handler, ControllerTarget):
        return handler
    if isinstance(handler, (tuple, list)):
        if len(handler) not in (2, 3):
            msg = f"Controller handler must be (controller, action[, module]), got {handler!r}"
            raise ConfigurationError(msg)
        return ControllerTarget(*handler)
    if isinstance(handler, str):
        return resolve_class(handler)
    if callable(handler):
        return handler
    msg = f"Invalid route handler: {handler!r}"
    raise ConfigurationError(msg)


class UrlManager(Component):
    """Resolve requests against an ordered table of URL rules.

    Options:
        routes: Either a mapping of ``pattern -> handler`` or an iterable
            of rule mappings with ``pattern``, ``handler`` and optional
            ``methods``, ``name`` and ``defaults`` keys.
        case_sensitive: Match static segments case-sensitively.
        converters: Extra converters by name, as ``Converter`` instances
            or bare regex strings. They may shadow the built-in ones.
    """

    routes: Mapping[str, Any] | Iterable[Mapping[str, Any]] = ()
    case_sensitive: bool = True
    converters: Mapping[str, Converter | str] = {}

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        self._converters: dict[str, Converter] = dict(CONVERTERS)
        for name, converter in self.converters.items():
            self._converters[name] = Converter(converter) if isinstance(converter, str) else converter
        self._rules: list[UrlRule] = []
        self._named: dict[str, UrlRule] = {}
        routes = self.routes
        if isinstance(routes, Mapping):
            for pattern, handler in routes.items():
                self.add(pattern, handler)
        else:
            for rule in routes:
                self.add(**rule)

    @property
    def rules(self) -> tuple[UrlRule, ...]:
        return tuple(self._rules)

    def add(
        self,
        pattern: str,
        handler: Any,
        *,
        methods: Iterable[str] | None = None,
        name: str | None = None,
        defaults: Mapping[str, Any] | None = None,
    ) -> UrlRule:
        """Append a rule to the table and return it."""
        regex, converters = compile_pattern(pattern, self.case_sensitive, self._converters)
        rule = UrlRule(
            pattern=pattern,
            handler=normalize_handler(handler),
            regex=regex,
            converters=converters,
            methods=frozenset(m.upper() for m in methods) if methods else None,
            name=name,
            defaults=dict(defaults or {}),
        )
        if name is not None:
            if name in self._named:
                msg = f"Duplicate route name {name!r}"
                raise ConfigurationError(msg)
            self._named[name] = rule
        self._rules.append(rule)
        return rule

    def parse_url(self, request: Any) -> Route | None:
        """Resolve *request* to a ``Route``, or ``None`` if nothing matches."""
        path = "/" + request.path.strip("/")
        method = getattr(request, "method", "GET").upper()
        for rule in self._rules:
            if rule.methods is not None and method not in rule.methods:
                continue
            match = rule.regex.fullmatch(path)
            if match is None:
                continue
            try:
                params = {
                    key: convert_param(value, rule.converters[key])
                    for key, value in match.groupdict().items()
                }
            except ValueError:
                continue
            return Route(rule.handler, {**rule.defaults, **params})
        return None

    def url_for(self, name: str, **params: Any) -> str:
        """Build the path of the rule called *name*.

        Parameters that do not appear in the pattern are appended as a
        query string.

        Raises:
            LookupError: If no rule has that name or a path parameter
                is missing.
        """
        rule = self._named.get(name)
        if rule is None:
            msg = f"No route named {name!r}"
            raise LookupError(msg)

        segments: list[str] = []
        for segment in rule.pattern.strip("/").split("/"):
            if not segment:
                continue
            match = _SEGMENT_PARAM.match(segment)
            if match is None:
                segments.append(segment)
                continue
            key = match["name"]
            if key not in params:
                msg = f"Missing parameter {key!r} for route {name!r}"
                raise LookupError(msg)
            segments.append(format_param(params.pop(key), rule.converters[key]))

        path = "/" + "/".join(segments)
        if params:
            path = f"{path}?{urlencode(params, doseq=True)}"
        return path
