"""The current request.

Unlike a response object, a perch request is mutable in one place: the
dispatcher merges route parameters into ``query`` before the controller
runs. Everything else is set once, either directly or by
``Request.from_environ()``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl

from perch.component import Component
from perch.errors import ConfigurationError
from perch.http.cookies import parse_cookies
from perch.http.headers import Headers

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(eq=False)
class Request(Component):
    """An incoming request.

    Registered as the ``request`` component. CSRF validation is delegated
    to the application's ``security_manager``.
    """

    path: str = "/"
    method: str = "GET"
    query: dict[str, Any] = field(default_factory=dict)
    form: dict[str, Any] = field(default_factory=dict)
    headers: Headers = field(default_factory=Headers)
    cookies: dict[str, str] = field(default_factory=dict)
    enable_csrf_validation: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)
        self.method = self.method.upper()

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def is_post(self) -> bool:
        return self.method == "POST"

    @property
    def is_ajax(self) -> bool:
        return self.headers.get("x-requested-with") == "XMLHttpRequest"

    def get(self, name: str, default: Any = None) -> Any:
        """Look *name* up in the query, then in the form data."""
        if name in self.query:
            return self.query[name]
        return self.form.get(name, default)

    # -- CSRF --

    def validate_csrf(self) -> None:
        """Check the submitted CSRF token.

        Raises:
            AuthError: If the token is missing or does not match.
            ConfigurationError: If the request is not attached to an
                application with a security manager.
        """
        security = self.app.get_component("security_manager") if self.app is not None else None
        if security is None:
            msg = "CSRF validation needs a 'security_manager' component on the application"
            raise ConfigurationError(msg)
        security.validate_csrf(self)

    # -- Factory --

    @classmethod
    def from_environ(cls, environ: Mapping[str, Any], **options: Any) -> Request:
        """Create a Request from a WSGI-style environ mapping.

        Only URL-encoded form bodies are read; other bodies are left alone.
        """
        header_map = Headers.from_environ(environ)

        form: dict[str, Any] = {}
        content_type = header_map.get("content-type", "") or ""
        stream = environ.get("wsgi.input")
        if stream is not None and content_type.startswith(_FORM_CONTENT_TYPE):
            try:
                length = int(header_map.get("content-length") or 0)
            except ValueError:
                length = 0
            if length > 0:
                body = stream.read(length).decode("latin-1")
                form = dict(parse_qsl(body, keep_blank_values=True))

        return cls(
            path=environ.get("PATH_INFO") or "/",
            method=environ.get("REQUEST_METHOD", "GET"),
            query=dict(parse_qsl(environ.get("QUERY_STRING", ""), keep_blank_values=True)),
            form=form,
            headers=header_map,
            cookies=parse_cookies(header_map.get("cookie", "") or ""),
            **options,
        )
