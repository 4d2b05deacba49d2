"""Perch application class.

The application is the root context of a run. It is built once per
process, in a fixed order, and then ``run()`` once::

    app = Application({
        "base_path": "/srv/shop",
        "components": {
            "url_manager": {"routes": {"/posts/{id:int}": (PostController, "view")}},
        },
        "modules": ["blog", ("shop", {"currency": "EUR"})],
        "params": {"admin_email": "admin@example.com"},
        "name": "Shop",
    })
    app.run()

Bootstrap order (later steps may rely on earlier ones):

1. base path, then the ``App``, ``Modules`` and ``www`` aliases and the
   configured ``aliases``
2. the ``error_handler`` component, installed as ``sys.excepthook``
3. ``pre_init()``
4. core component descriptors (nothing is instantiated yet)
5. configured ``components``, ``modules``, ``params`` and properties
6. ``locale``, then eager ``preload`` of component ids
7. lifecycle signal handlers
8. ``pre_configure()`` of every enabled module class
9. ``init()``

There is no global "current application": the instance is handed to
components (``Component.attach``), modules and controllers (``app=``).
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import zlib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from perch._internal.factory import create_object, is_enabled, resolve_class
from perch.aliases import Aliases
from perch.config import AppConfig
from perch.controller import Controller
from perch.error_handler import ErrorHandler, format_compact_traceback
from perch.errors import ConfigurationError, ResolutionError
from perch.modules.base import BaseModule
from perch.routing.route import ControllerTarget, Route
from perch.state import GlobalStateStore

logger = logging.getLogger("perch.app")

# Registered before user configuration is applied; user config merges over these
CORE_COMPONENTS: dict[str, dict[str, Any]] = {
    "request": {"class": "perch.http.request:Request"},
    "url_manager": {"class": "perch.routing.url_manager:UrlManager"},
    "state_persister": {"class": "perch.state:StatePersister"},
    "signals": {"class": "perch.signals:SignalBus"},
    "security_manager": {"class": "perch.security.manager:SecurityManager"},
    "middleware": {"class": "perch.middleware.pipeline:MiddlewarePipeline"},
    "command_runner": {"class": "perch.cli.runner:CommandRunner"},
}

DEFAULT_ERROR_HANDLER: dict[str, Any] = {"class": ErrorHandler}


def _as_config(config: AppConfig | Mapping[str, Any] | str | os.PathLike[str] | None) -> AppConfig:
    if config is None:
        return AppConfig()
    if isinstance(config, AppConfig):
        return config
    if isinstance(config, (str, os.PathLike)):
        return AppConfig.load(config)
    if isinstance(config, Mapping):
        return AppConfig.from_mapping(config)
    msg = f"Application config must be an AppConfig, a mapping or a file path, got {type(config).__name__}"
    raise TypeError(msg)


class Application(BaseModule):
    """The root module: component locator, module tree, dispatcher and lifecycle.

    Subclasses override ``pre_init()`` and ``init()`` (calling ``super()``)
    to hook into bootstrap, and ``before_controller_action()`` /
    ``after_controller_action()`` to wrap every controller action.
    """

    name: str = "My Application"

    # Command mode: dispatch argv to the command runner instead of routing
    console: bool = False

    command_map: Mapping[str, Any] = {}

    def __init__(
        self,
        config: AppConfig | Mapping[str, Any] | str | os.PathLike[str] | None = None,
    ) -> None:
        self.config: AppConfig = _as_config(config)
        self._base_path: str | None = None
        self._module_path: str | None = None
        self._runtime_path: str | None = None
        self._time_zone = "UTC"
        self._home_url: str | None = None
        self._aliases = Aliases()
        self._controller: Controller | None = None
        self._ended = False
        self._command_mode: bool | None = None
        self._global_state = GlobalStateStore(
            lambda: self._require_component("state_persister"),
            self._schedule_state_flush,
        )
        self.argv: list[str] = list(sys.argv)
        self.locale: dict[str, Any] = {}
        self.preload: tuple[str, ...] = ()
        super().__init__(None, None)
        self._bootstrap(self.config)

    def _bootstrap(self, config: AppConfig) -> None:
        # The base path comes first: aliases and defaults derive from it
        self.set_base_path(config.base_path if config.base_path is not None else os.getcwd())
        self._aliases.set("App", self.base_path)
        self._aliases.set("Modules", os.path.join(self.base_path, "Modules"))
        self._aliases.set("www", self._web_path(config.web_path))
        self._aliases.update(config.aliases)

        self.init_system_handlers({**DEFAULT_ERROR_HANDLER, **config.error_handler})
        self.pre_init()
        self.register_core_components()

        self.set_components(config.components)
        self.set_modules(config.modules)
        self.set_params(config.params)
        self.configure(config.properties)

        self.locale = dict(config.locale)
        self.preload = tuple(config.preload)
        self.preload_components()

        self.init_events()
        self.init_modules()
        self.init()

    @staticmethod
    def _web_path(web_path: str | Path | None) -> str:
        if web_path is None:
            return os.path.realpath(os.path.dirname(sys.argv[0]) or os.getcwd())
        path = os.path.realpath(web_path)
        if not os.path.isdir(path):
            msg = f'The web path "{web_path}" is not a valid directory.'
            raise ConfigurationError(msg)
        return path

    # -- Bootstrap hooks --

    def init_system_handlers(self, config: Mapping[str, Any]) -> None:
        """Register the ``error_handler`` component and install it."""
        self.set_component("error_handler", dict(config), merge=False)
        if is_enabled(config):
            self._require_component("error_handler").install()

    def pre_init(self) -> None:
        """Hook run before any component is registered."""

    def register_core_components(self) -> None:
        self.set_components(CORE_COMPONENTS)

    def preload_components(self) -> None:
        for id in self.preload:
            self.get_component(id)

    def init_events(self) -> None:
        self.signals.connect("begin", self.begin_request)

    def init_modules(self) -> None:
        """Resolve module classes and run their ``pre_configure()`` hooks."""
        self._modules.resolve_factories()

    def init(self) -> None:
        """Hook run last during bootstrap.

        Loads the component the configured mode needs first: the command
        runner in command mode, the request otherwise. Subclasses should
        call ``super().init()``.
        """
        if self.console:
            self._require_component("command_runner")
        else:
            self._require_component("request")

    # -- Identity and paths --

    @property
    def app(self) -> Application:
        return self

    @property
    def id(self) -> str:
        """Unique application id; derived from base path and name unless set."""
        if self._id is None:
            self._id = format(zlib.crc32(f"{self.base_path}{self.name}".encode()), "x")
        return self._id

    @id.setter
    def id(self, value: str) -> None:
        self._id = value

    @property
    def base_path(self) -> str:
        assert self._base_path is not None
        return self._base_path

    def set_base_path(self, path: str | os.PathLike[str]) -> None:
        real = os.path.realpath(path)
        if not os.path.isdir(real):
            msg = f'Application base path "{path}" is not a valid directory.'
            raise ConfigurationError(msg)
        self._base_path = real

    @property
    def module_path(self) -> str:
        """Directory holding application modules. Defaults to ``<base_path>/Modules``."""
        if self._module_path is None:
            self._module_path = os.path.join(self.base_path, "Modules")
        return self._module_path

    @module_path.setter
    def module_path(self, value: str | os.PathLike[str]) -> None:
        path = os.path.realpath(value)
        if not os.path.isdir(path):
            msg = f'The module path "{value}" is not a valid directory.'
            raise ConfigurationError(msg)
        self._module_path = path
        self._aliases.set("Modules", path)

    @property
    def runtime_path(self) -> str:
        """Writable directory for runtime files. Defaults to ``<base_path>/runtime``."""
        if self._runtime_path is None:
            self.runtime_path = os.path.join(self.base_path, "runtime")
        assert self._runtime_path is not None
        return self._runtime_path

    @runtime_path.setter
    def runtime_path(self, value: str | os.PathLike[str]) -> None:
        path = os.path.realpath(value)
        if not os.path.isdir(path) or not os.access(path, os.W_OK):
            msg = (
                f'Application runtime path "{value}" is not valid. '
                "Please make sure it is a directory writable by the application process."
            )
            raise ConfigurationError(msg)
        self._runtime_path = path

    @property
    def aliases(self) -> Aliases:
        return self._aliases

    @property
    def time_zone(self) -> str:
        return self._time_zone

    @time_zone.setter
    def time_zone(self, value: str) -> None:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown time zone {value!r}"
            raise ConfigurationError(msg) from exc
        self._time_zone = value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self._time_zone)

    @property
    def home_url(self) -> str:
        """Home page URL: the configured value, else the ``home`` route, else ``/``."""
        if self._home_url is not None:
            return self._home_url
        urls = self.get_component("url_manager")
        if urls is not None:
            try:
                return urls.url_for("home")
            except LookupError:
                pass
        return "/"

    @home_url.setter
    def home_url(self, value: str) -> None:
        self._home_url = value

    @property
    def controller(self) -> Controller | None:
        """The controller whose action is currently running."""
        return self._controller

    @controller.setter
    def controller(self, value: Controller | None) -> None:
        self._controller = value

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def command_mode(self) -> bool:
        """Whether this run dispatches to the command runner.

        Fixed when ``run()`` starts; before that it follows ``console``.
        """
        if self._command_mode is None:
            return bool(self.console)
        return self._command_mode

    def set_command_map(self, value: Mapping[str, Any]) -> None:
        self.command_map = dict(value)

    # -- Components --

    def _require_component(self, id: str) -> Any:
        component = self.get_component(id)
        if component is None:
            msg = f'The "{id}" application component is not registered or is disabled.'
            raise ConfigurationError(msg)
        return component

    @property
    def request(self) -> Any:
        return self.get_component("request")

    @property
    def url_manager(self) -> Any:
        return self.get_component("url_manager")

    @property
    def state_persister(self) -> Any:
        return self.get_component("state_persister")

    @property
    def signals(self) -> Any:
        return self._require_component("signals")

    @property
    def security_manager(self) -> Any:
        return self.get_component("security_manager")

    @property
    def middleware(self) -> Any:
        return self.get_component("middleware")

    @property
    def command_runner(self) -> Any:
        return self.get_component("command_runner")

    @property
    def error_handler(self) -> Any:
        return self.get_component("error_handler")

    # -- Lifecycle --

    def run(self) -> None:
        """Run the application once: begin, dispatch, end."""
        self._command_mode = bool(self.console)
        logger.debug(
            "Running %s in %s mode", self.name, "command" if self._command_mode else "request"
        )
        self.signals.send("begin", self)
        atexit.register(self._end_at_exit)
        self.process_request()
        self.end(0, terminate=False)

    def end(self, status: int = 0, terminate: bool = True) -> None:
        """Finish the run, sending ``"end"`` at most once.

        Global state changed by ``"end"`` handlers, or after the run has
        ended, is saved as soon as it changes. With *terminate* the process
        then exits with *status*.
        """
        if not self._ended:
            self._ended = True
            atexit.unregister(self._end_at_exit)
            self.signals.send("end", self)
        if terminate:
            sys.exit(status)

    def _end_at_exit(self) -> None:
        self.end(0, terminate=False)

    def begin_request(self, sender: Any, **kwargs: Any) -> None:
        """``"begin"`` handler: run the middleware pipeline on the request."""
        if self.command_mode:
            return
        middleware = self.middleware
        if middleware is not None:
            middleware.process_request(self._require_component("request"))

    # -- Dispatch --

    def process_request(self) -> None:
        """Dispatch the run to the command runner or to a controller."""
        self.signals.send("process_request", self)
        if self.command_mode:
            runner = self._require_component("command_runner")
            runner.add_commands(self.command_map)
            status = runner.run(self.argv)
            if isinstance(status, int) and not isinstance(status, bool):
                self.end(status)
        else:
            self.run_controller(self.parse_route())

    def parse_route(self) -> Route | None:
        return self._require_component("url_manager").parse_url(self._require_component("request"))

    def run_controller(self, route: Route | None) -> Any:
        """Execute *route* and return the action result.

        A callable handler is invoked with the request and ends the run.

        Raises:
            ResolutionError: If *route* is ``None``.
            AuthError: If CSRF validation fails. The action does not run.
            InstantiationError: If the controller cannot be built.
        """
        request = self._require_component("request")
        if route is None:
            raise ResolutionError(request.path)

        if route.is_callable:
            route.handler(request)
            self.end()
            return None

        target = route.handler
        if not isinstance(target, ControllerTarget):
            msg = f"Route handler must be callable or a ControllerTarget, got {target!r}"
            raise ConfigurationError(msg)

        controller = self.create_controller(target, request)
        action = target.action or controller.default_action
        request.query.update(route.params)
        params = dict(request.query)

        if (
            not self.command_mode
            and action not in controller.get_csrf_exempt_actions()
            and request.enable_csrf_validation
        ):
            request.validate_csrf()

        previous = self._controller
        self._controller = controller
        try:
            controller.init()
            return controller.run(action, params)
        finally:
            self._controller = previous

    def create_controller(self, target: ControllerTarget, request: Any) -> Controller:
        """Build the controller for *target*, owned by its module if it names one."""
        owner = None
        if target.module is not None:
            owner = self.find_module(target.module)
            if owner is None:
                raise ResolutionError(request.path, f'Module "{target.module}" is not available.')
        return create_object({"class": resolve_class(target.controller)}, owner, request, app=self)

    def find_module(self, id: str) -> BaseModule | None:
        """Find module *id*, searching outward from the active controller's module."""
        controller = self._controller
        module = controller.get_owning_module() if controller is not None else None
        while module is not None:
            found = module.get_module(id)
            if found is not None:
                return found
            module = module.get_parent_module()
        return self.get_module(id)

    def before_controller_action(self, controller: Controller, action: str) -> bool:
        """Called before every controller action. Return False to skip it."""
        return True

    def after_controller_action(self, controller: Controller, action: str) -> None:
        """Called after every controller action that ran."""

    # -- Global state --

    @property
    def global_state(self) -> GlobalStateStore:
        return self._global_state

    def get_global_state(self, key: str, default: Any = None) -> Any:
        return self._global_state.get(key, default)

    def set_global_state(self, key: str, value: Any, default: Any = None) -> None:
        """Store a value that persists across runs.

        Setting *key* to *default* removes it. Changes are written once,
        when the run ends.
        """
        self._global_state.set(key, value, default)

    def clear_global_state(self, key: str) -> None:
        self._global_state.clear(key)

    def load_global_state(self) -> None:
        self._global_state.load()

    def save_global_state(self) -> None:
        self._global_state.flush()

    def _schedule_state_flush(self, flush: Callable[[], None]) -> None:
        if self._ended:
            flush()
            return
        self.signals.connect("end", lambda sender, **kwargs: flush(), once=True)

    # -- Errors --

    def display_error(self, exc: BaseException) -> None:
        """Print *exc* with a simplified trace to stderr.

        Used when no error handler is installed.
        """
        print(f"Error: {format_compact_traceback(exc)}", file=sys.stderr)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} at {self._base_path!r}>"
