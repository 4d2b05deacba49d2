"""Middleware pipeline component.

Registered as the ``middleware`` component. The application runs it with
the current request when the ``"begin"`` signal fires::

    app = Application({
        "components": {
            "middleware": {"middleware": ["perch.middleware:MethodOverride", strip_tracking]},
        },
    })
"""

from collections.abc import Iterable
from typing import Any

from perch._internal.factory import resolve_class
from perch.component import Component
from perch.http.request import Request
from perch.middleware.protocol import Middleware


class MiddlewarePipeline(Component):
    """Ordered list of middleware callables.

    Options:
        middleware: Callables or import strings. An import string naming
            a class is instantiated with no arguments.
    """

    middleware: Iterable[Any] = ()

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        self._chain: list[Middleware] = []
        for entry in self.middleware:
            self.add(entry)

    def __len__(self) -> int:
        return len(self._chain)

    def add(self, middleware: Any) -> None:
        """Append *middleware* (a callable or an import string)."""
        if isinstance(middleware, str):
            middleware = resolve_class(middleware)
            if isinstance(middleware, type):
                middleware = middleware()
        if not callable(middleware):
            msg = f"Middleware must be callable, got {middleware!r}"
            raise TypeError(msg)
        self._chain.append(middleware)

    def process_request(self, request: Request) -> None:
        """Run every middleware on *request*, in registration order."""
        for middleware in self._chain:
            middleware(request)


class MethodOverride:
    """Use the ``_method`` form field as the method of POST requests.

    Lets HTML forms address ``PUT``/``PATCH``/``DELETE`` actions.
    """

    __slots__ = ("allowed", "field_name")

    def __init__(
        self,
        field_name: str = "_method",
        allowed: frozenset[str] = frozenset({"PUT", "PATCH", "DELETE"}),
    ) -> None:
        self.field_name = field_name
        self.allowed = allowed

    def __call__(self, request: Request) -> None:
        if request.method != "POST":
            return
        override = str(request.form.get(self.field_name, "")).upper()
        if override in self.allowed:
            request.method = override
