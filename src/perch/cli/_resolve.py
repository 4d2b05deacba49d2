"""Locate the application named on the ``perch --app`` command line."""

from typing import Any

from perch._internal.factory import resolve_class
from perch.app import Application


def resolve_app(import_string: str) -> Application:
    """Return the Application that *import_string* points at.

    ``"pkg.mod:attr"`` names an attribute; a bare ``"pkg.mod"`` means
    ``"pkg.mod:app"``. The attribute may be an instance, an Application
    subclass (built with its default configuration) or a zero-argument
    factory.

    Raises:
        InstantiationError: If the module or attribute cannot be imported.
        TypeError: If the factory fails or the result is not an Application.
    """
    target = import_string if ":" in import_string else f"{import_string}:app"
    obj: Any = resolve_class(target)
    if isinstance(obj, Application):
        return obj

    if callable(obj):
        try:
            obj = obj()
        except Exception as exc:
            msg = f"Building the application from {import_string!r} failed: {exc}"
            raise TypeError(msg) from exc

    if not isinstance(obj, Application):
        msg = f"{import_string!r} resolved to {type(obj).__name__}, not a perch.Application instance"
        raise TypeError(msg)
    return obj
