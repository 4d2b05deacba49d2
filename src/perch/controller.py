"""Controller base class.

A controller groups actions. The dispatcher builds one per request as
``cls(owner_module, request, app=app)``, calls ``init()`` and then
``run(action_id, params)``::

    class PostController(Controller):
        csrf_exempt = frozenset({"feed"})

        def action_view(self, id: int):
            return self.app.get_component("posts").get(id)

        def action_feed(self):
            ...

Action ``"view"`` maps to the ``action_view`` method; dashes in action ids
become underscores. Parameters are bound by name (see
``perch._internal.invoke``).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from perch._internal.invoke import bind_params
from perch.errors import ResolutionError

if TYPE_CHECKING:
    from perch.app import Application
    from perch.http.request import Request
    from perch.modules.base import BaseModule


class Controller:
    """Base class for request controllers."""

    # Action ids that skip CSRF validation
    csrf_exempt: frozenset[str] = frozenset()

    # Action run when the route names none
    default_action: str = "index"

    def __init__(
        self,
        module: BaseModule | None = None,
        request: Request | None = None,
        *,
        app: Application | None = None,
    ) -> None:
        self.module = module
        self.request = request
        self.app = app
        self.action: str | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} action={self.action!r}>"

    def get_owning_module(self) -> BaseModule | None:
        return self.module

    def get_csrf_exempt_actions(self) -> frozenset[str]:
        return frozenset(self.csrf_exempt)

    def init(self) -> None:
        """Hook run after the controller becomes the active controller."""

    def get_action(self, action_id: str) -> Callable[..., Any] | None:
        method = getattr(self, f"action_{action_id.replace('-', '_')}", None)
        return method if callable(method) else None

    def before_action(self, action_id: str, params: Mapping[str, Any]) -> bool:
        """Return False to skip the action."""
        if self.app is not None:
            return self.app.before_controller_action(self, action_id)
        return True

    def after_action(self, action_id: str, result: Any) -> None:
        if self.app is not None:
            self.app.after_controller_action(self, action_id)

    def run(self, action_id: str | None, params: Mapping[str, Any]) -> Any:
        """Run *action_id* with *params* bound to its signature.

        Raises:
            ResolutionError: If the controller has no such action.
        """
        action_id = action_id or self.default_action
        method = self.get_action(action_id)
        if method is None:
            path = self.request.path if self.request is not None else action_id
            detail = f'The action "{action_id}" does not exist in {type(self).__name__}.'
            raise ResolutionError(path, detail)

        self.action = action_id
        if not self.before_action(action_id, params):
            return None
        result = method(**bind_params(method, params, self.request))
        self.after_action(action_id, result)
        return result
