"""Tests for request dispatch: routes, controllers, CSRF and module lookup."""

from typing import Any

import pytest

from perch.app import Application
from perch.controller import Controller
from perch.errors import AuthError, ConfigurationError, HTTPError, ResolutionError
from perch.modules import Module
from perch.routing import ControllerTarget, Route

CALLS: list[tuple[Any, ...]] = []
SECRET = "test-secret"


class PostController(Controller):
    csrf_exempt = frozenset({"feed"})

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        CALLS.append(("construct", type(self).__name__))

    def init(self) -> None:
        CALLS.append(("init", self.app.controller is self))

    def action_view(self, id: int, page: int = 1) -> str:
        CALLS.append(("view", id, page))
        return f"post {id}"

    def action_feed(self) -> str:
        CALLS.append(("feed",))
        return "feed"


class OuterController(Controller):
    csrf_exempt = frozenset({"outer"})

    def action_outer(self) -> list[Any]:
        seen = [self.app.controller]
        inner = Route(ControllerTarget(InnerController, "inner"))
        seen.append(self.app.run_controller(inner))
        seen.append(self.app.controller)
        return seen


class InnerController(Controller):
    csrf_exempt = frozenset({"inner"})

    def action_inner(self) -> Any:
        return self.app.controller


class CommentsModule(Module):
    pass


class ShopModule(Module):
    pass


class BlogModule(Module):
    pass


class BlogController(Controller):
    csrf_exempt = frozenset({"index"})

    def action_index(self) -> dict[str, Any]:
        return {
            "module": self.get_owning_module(),
            "comments": self.app.find_module("comments"),
            "shop": self.app.find_module("shop"),
            "nothing": self.app.find_module("nothing"),
        }


class GateApp(Application):
    def before_controller_action(self, controller: Controller, action: str) -> bool:
        CALLS.append(("before", action))
        return action != "view"

    def after_controller_action(self, controller: Controller, action: str) -> None:
        CALLS.append(("after", action))


def ping(request: Any) -> None:
    CALLS.append(("ping", request.path))


ROUTES = {
    "/posts/{id:int}": (PostController, "view"),
    "/feed": (PostController, "feed"),
    "/missing-action": (PostController, "delete"),
    "/ping": ping,
}


@pytest.fixture(autouse=True)
def _reset_calls() -> None:
    CALLS.clear()


@pytest.fixture
def site(make_app):
    """Build an app serving ROUTES for a request with the given attributes."""

    def factory(cls: type[Application] = Application, **request: Any) -> Application:
        return make_app(
            {
                "components": {
                    "url_manager": {"routes": ROUTES},
                    "request": request,
                    "security_manager": {"secret_key": SECRET},
                },
            },
            cls=cls,
        )

    return factory


class TestRouteResolution:
    def test_parse_route(self, site) -> None:
        app = site(path="/posts/7")
        route = app.parse_route()
        assert route == Route(ControllerTarget(PostController, "view"), {"id": 7})

    def test_unresolved_route_carries_path(self, site) -> None:
        app = site(path="/nowhere")
        with pytest.raises(ResolutionError) as exc_info:
            app.run_controller(app.parse_route())
        assert exc_info.value.path == "/nowhere"
        assert exc_info.value.status == 404

    def test_run_raises_resolution_error(self, site) -> None:
        app = site(path="/nowhere")
        with pytest.raises(ResolutionError, match="/nowhere"):
            app.run()


class TestCallableHandler:
    def test_callable_ends_run_without_controller(self, site) -> None:
        app = site(path="/ping")
        with pytest.raises(SystemExit) as exc_info:
            app.run_controller(app.parse_route())
        assert exc_info.value.code == 0
        assert CALLS == [("ping", "/ping")]
        assert app.ended
        assert app.controller is None

    def test_run_with_callable(self, site) -> None:
        app = site(path="/ping")
        with pytest.raises(SystemExit):
            app.run()
        assert ("ping", "/ping") in CALLS


class TestControllerDispatch:
    def test_route_params_win_over_query(self, site) -> None:
        app = site(path="/posts/7", query={"id": "1", "page": "3"}, enable_csrf_validation=False)
        result = app.run_controller(app.parse_route())
        assert result == "post 7"
        assert app.request.query == {"id": 7, "page": "3"}
        assert ("view", 7, 3) in CALLS

    def test_controller_is_active_during_action(self, site) -> None:
        app = site(path="/posts/7", enable_csrf_validation=False)
        app.run_controller(app.parse_route())
        assert ("init", True) in CALLS
        assert app.controller is None

    def test_controller_gets_request_and_no_owner(self, site) -> None:
        app = site(path="/feed")
        route = app.parse_route()
        controller = app.create_controller(route.handler, app.request)
        assert controller.request is app.request
        assert controller.get_owning_module() is None
        assert controller.app is app

    def test_missing_action(self, site) -> None:
        app = site(path="/missing-action", enable_csrf_validation=False)
        with pytest.raises(ResolutionError, match="delete"):
            app.run_controller(app.parse_route())

    def test_bad_parameter(self, site) -> None:
        app = site(path="/posts/7", query={"page": "two"}, enable_csrf_validation=False)
        with pytest.raises(HTTPError) as exc_info:
            app.run_controller(app.parse_route())
        assert exc_info.value.status == 400

    def test_invalid_handler(self, site) -> None:
        app = site(path="/")
        with pytest.raises(ConfigurationError):
            app.run_controller(Route("not-a-handler"))

    def test_nested_dispatch_restores_active_controller(self, site) -> None:
        app = site(path="/")
        outer_seen, inner_seen, restored = app.run_controller(
            Route(ControllerTarget(OuterController, "outer"))
        )
        assert isinstance(outer_seen, OuterController)
        assert isinstance(inner_seen, InnerController)
        assert restored is outer_seen
        assert app.controller is None

    def test_active_controller_restored_after_failure(self, site) -> None:
        app = site(path="/missing-action", enable_csrf_validation=False)
        with pytest.raises(ResolutionError):
            app.run_controller(app.parse_route())
        assert app.controller is None

    def test_action_filters(self, site) -> None:
        app = site(cls=GateApp, path="/posts/7", enable_csrf_validation=False)
        assert app.run_controller(app.parse_route()) is None
        assert ("before", "view") in CALLS
        assert not any(call[0] == "view" for call in CALLS)

        app = site(cls=GateApp, path="/feed")
        assert app.run_controller(app.parse_route()) == "feed"
        assert ("after", "feed") in CALLS


class TestCsrf:
    def test_invalid_token_blocks_action(self, site) -> None:
        app = site(path="/posts/7", method="POST")
        token = app.security_manager.generate_csrf_token()
        app.request.cookies["_csrf_token"] = token
        app.request.form["_csrf_token"] = "forged"
        with pytest.raises(AuthError, match="invalid"):
            app.run_controller(app.parse_route())
        assert not any(call[0] in ("view", "init") for call in CALLS)

    def test_missing_token_blocks_action(self, site) -> None:
        app = site(path="/posts/7")
        with pytest.raises(AuthError, match="missing"):
            app.run_controller(app.parse_route())
        assert not any(call[0] == "view" for call in CALLS)

    def test_valid_token_runs_action(self, site) -> None:
        app = site(path="/posts/7", method="POST")
        token = app.security_manager.generate_csrf_token()
        app.request.cookies["_csrf_token"] = token
        app.request.form["_csrf_token"] = token
        assert app.run_controller(app.parse_route()) == "post 7"

    def test_exempt_action_skips_validation(self, site) -> None:
        app = site(path="/feed")
        assert app.run_controller(app.parse_route()) == "feed"

    def test_request_flag_disables_validation(self, site) -> None:
        app = site(path="/posts/7", enable_csrf_validation=False)
        assert app.run_controller(app.parse_route()) == "post 7"

    def test_command_mode_skips_validation(self, make_app) -> None:
        app = make_app({"console": True, "components": {"request": {"path": "/posts/7"}}})
        route = Route(ControllerTarget(PostController, "view"), {"id": 7})
        assert app.run_controller(route) == "post 7"


class TestFindModule:
    @pytest.fixture
    def blog_app(self, make_app) -> Application:
        return make_app({
            "modules": {
                "blog": {"class": BlogModule, "modules": {"comments": {"class": CommentsModule}}},
                "shop": {"class": ShopModule},
            },
            "components": {"request": {"path": "/blog"}},
        })

    def test_controller_owned_by_module(self, blog_app: Application) -> None:
        found = blog_app.run_controller(Route(ControllerTarget(BlogController, "index", module="blog")))
        blog = blog_app.get_module("blog")
        assert found["module"] is blog

    def test_search_walks_up_from_controller_module(self, blog_app: Application) -> None:
        found = blog_app.run_controller(Route(ControllerTarget(BlogController, "index", module="blog")))
        blog = blog_app.get_module("blog")
        assert found["comments"] is blog.get_module("comments")
        assert found["shop"] is blog_app.get_module("shop")
        assert found["nothing"] is None

    def test_without_active_controller(self, blog_app: Application) -> None:
        assert blog_app.find_module("comments") is None
        assert blog_app.find_module("Shop") is blog_app.get_module("shop")

    def test_unknown_owner_module(self, blog_app: Application) -> None:
        with pytest.raises(ResolutionError, match="forum"):
            blog_app.run_controller(Route(ControllerTarget(BlogController, "index", module="forum")))
