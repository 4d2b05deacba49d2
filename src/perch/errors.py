"""Perch exception hierarchy.

Shared across the locator, module registry, dispatcher and lifecycle so
every layer raises and catches the same types. Nothing here is retried:
errors propagate to ``Application.run()`` and from there to the caller.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when application configuration is invalid.

    Typically raised while bootstrapping, when a managed path does not
    exist or an unknown configuration key is supplied.
    """


class InstantiationError(PerchError):
    """Raised when a component or module class cannot be built.

    Covers unresolvable import strings, configs without a ``class`` key,
    and failures inside the constructor or property assignment.
    """

    def __init__(self, target: object, detail: str = "") -> None:
        self.target = target
        self.detail = detail
        msg = f"Unable to create {target!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the dispatcher or by controllers. The error handler logs
    these at debug level instead of treating them as crashes.
    """

    status: int
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class ResolutionError(HTTPError):
    """404: the request could not be resolved to a route.

    ``path`` carries the original, unresolved request path.
    """

    path: str

    def __init__(self, path: str, detail: str = "") -> None:
        super().__init__(
            status=404,
            detail=detail or f'Unable to resolve the request "{path}".',
        )
        object.__setattr__(self, "path", path)


class AuthError(HTTPError):
    """403: CSRF validation failed for the current request."""

    def __init__(self, detail: str = "CSRF token invalid") -> None:
        super().__init__(status=403, detail=detail)
