"""Perch: bootstrap and dispatch core for synchronous applications.

Owns the application lifecycle, a lazy component locator, a hierarchical
module registry and the route-to-controller pipeline.

Basic usage::

    from perch import Application, Controller

    class SiteController(Controller):
        csrf_exempt = frozenset({"index"})

        def action_index(self):
            print("Hello, World!")

    app = Application({
        "components": {"url_manager": {"routes": {"/": (SiteController, "index")}}},
    })
    app.run()

Command mode::

    app = Application({"console": True, "command_map": {"greet": GreetCommand}})
    app.argv = ["manage", "greet", "Ada"]
    app.run()
"""

__version__ = "0.1.0.dev0"
__all__ = [
    "AppConfig",
    "Application",
    "AuthError",
    "Command",
    "Component",
    "ConfigurationError",
    "Controller",
    "ControllerTarget",
    "HTTPError",
    "InstantiationError",
    "Module",
    "PerchError",
    "Request",
    "ResolutionError",
    "Route",
    "ServiceLocator",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "Application":
        from perch.app import Application

        return Application

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Component":
        from perch.component import Component

        return Component

    if name == "Controller":
        from perch.controller import Controller

        return Controller

    if name == "Module":
        from perch.modules.base import Module

        return Module

    if name == "ServiceLocator":
        from perch.di.locator import ServiceLocator

        return ServiceLocator

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Route", "ControllerTarget"):
        from perch.routing import route as _route

        return getattr(_route, name)

    if name == "Command":
        from perch.cli.runner import Command

        return Command

    if name in (
        "AuthError",
        "ConfigurationError",
        "HTTPError",
        "InstantiationError",
        "PerchError",
        "ResolutionError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
