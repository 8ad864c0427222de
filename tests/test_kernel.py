"""Tests for wren.kernel — dispatch, normalization, failure handling."""

import json
from collections.abc import Mapping
from typing import Any

import pytest

from wren.config import AppConfig
from wren.container import Container
from wren.context import get_container, get_request, request_var
from wren.errors import (
    ConfigurationError,
    HandlerFailure,
    HTTPError,
    NotFound,
    UnresolvableDependency,
)
from wren.http.request import Request
from wren.http.response import Response
from wren.kernel import DispatchState, Kernel, normalize
from wren.routing.router import Router
from wren.views import ViewRenderer

# -- Application fixtures --


class UserRepository:
    def find(self, user_id: str) -> dict[str, str]:
        return {"id": user_id, "name": f"user-{user_id}"}


class UserController:
    def __init__(self, users: UserRepository, request: Request) -> None:
        self.users = users
        self.request = request

    def show(self, id: str) -> str:
        return f"<h1>{self.users.find(id)['name']}</h1>"

    async def profile(self, id: str) -> Response:
        return Response(f"profile {id}").with_header("X-Path", self.request.path)

    def data(self, id: str) -> dict[str, str]:
        return self.users.find(id)

    def explode(self) -> str:
        raise ValueError("boom")


class ApiUserController:
    __module__ = "shop.api.users"

    def index(self) -> list[int]:
        return [1, 2, 3]


class RecordingRenderer:
    def __init__(self) -> None:
        self.errors: list[Exception] = []

    def render(self, error: Exception) -> Response:
        self.errors.append(error)
        status = error.status if isinstance(error, HTTPError) else 500
        return Response("rendered", status=status)


class AsyncRenderer:
    async def render(self, error: Exception) -> Response:
        return Response("async rendered", status=599)


class StubViews:
    def render(self, name: str, context: Mapping[str, Any]) -> str:
        pairs = ",".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"<{name}:{pairs}>"


class PostController:
    def __init__(self, views: ViewRenderer) -> None:
        self.views = views

    def show(self, id: str) -> str:
        return self.views.render("posts/show.html", {"id": id})


def _kernel(register, *, middleware=(), renderer=None, config=None, container=None) -> Kernel:
    router = Router()
    register(router)
    router.compile()
    return Kernel(
        container or Container(),
        router,
        middleware=middleware,
        renderer=renderer,
        config=config,
    )


def _req(method: str, path: str) -> Request:
    return Request.build(method, path)


class TestNormalize:
    def test_response_passes_through(self) -> None:
        response = Response("x", status=201)
        assert normalize(response) is response

    def test_string_is_html(self) -> None:
        response = normalize("<p>hi</p>")
        assert response.text == "<p>hi</p>"
        assert response.content_type.startswith("text/html")

    def test_bytes_are_octet_stream(self) -> None:
        response = normalize(b"\x00\x01")
        assert response.body_bytes == b"\x00\x01"
        assert response.content_type == "application/octet-stream"

    def test_none_is_empty_html(self) -> None:
        response = normalize(None)
        assert response.status == 200
        assert response.text == ""

    def test_structured_requires_api(self) -> None:
        with pytest.raises(ConfigurationError, match="only API routes"):
            normalize({"a": 1})

    def test_structured_on_api_is_json(self) -> None:
        response = normalize([1, 2], api=True)
        assert response.content_type == "application/json"
        assert json.loads(response.text) == [1, 2]

    def test_other_values_are_stringified(self) -> None:
        assert normalize(42).text == "42"


class TestDispatch:
    async def test_end_to_end_controller_action(self) -> None:
        container = Container()
        container.singleton(UserRepository)
        kernel = _kernel(
            lambda r: r.get("/users/{id}", (UserController, "show")),
            container=container,
        )
        response = await kernel.handle(_req("GET", "/users/7"))
        assert response.status == 200
        assert response.text == "<h1>user-7</h1>"

    async def test_string_handler_reference(self) -> None:
        kernel = _kernel(lambda r: r.get("/users/{id}", f"{__name__}.UserController@show"))
        response = await kernel.handle(_req("GET", "/users/3"))
        assert response.text == "<h1>user-3</h1>"

    async def test_inline_handler_receives_params_positionally(self) -> None:
        def show(post_id: str, slug: str | None) -> str:
            return f"{post_id}:{slug}"

        kernel = _kernel(lambda r: r.get("/posts/{id}/{slug?}", show))
        assert (await kernel.handle(_req("GET", "/posts/4/intro"))).text == "4:intro"
        assert (await kernel.handle(_req("GET", "/posts/4"))).text == "4:None"

    async def test_async_action_and_request_injection(self) -> None:
        kernel = _kernel(lambda r: r.get("/users/{id}/profile", (UserController, "profile")))
        response = await kernel.handle(_req("GET", "/users/9/profile"))
        assert response.text == "profile 9"
        assert response.header("X-Path") == "/users/9/profile"

    async def test_request_carries_path_params(self) -> None:
        def show(id: str) -> str:
            return get_request().path_params["id"]

        kernel = _kernel(lambda r: r.get("/items/{id}", show))
        assert (await kernel.handle(_req("GET", "/items/abc"))).text == "abc"

    async def test_context_reset_after_dispatch(self) -> None:
        kernel = _kernel(lambda r: r.get("/", lambda: "ok"))
        await kernel.handle(_req("GET", "/"))
        assert request_var.get(None) is None

    async def test_each_request_gets_its_own_scope(self) -> None:
        scopes: list[Container] = []

        def capture() -> str:
            scopes.append(get_container())
            return "ok"

        root = Container()
        kernel = _kernel(lambda r: r.get("/", capture), container=root)
        await kernel.handle(_req("GET", "/"))
        await kernel.handle(_req("GET", "/"))
        assert scopes[0] is not scopes[1]
        assert all(scope.parent is root for scope in scopes)
        assert not root.bound(Request)

    async def test_controller_receives_bound_view_renderer(self) -> None:
        container = Container()
        container.singleton(ViewRenderer, lambda c: StubViews())
        kernel = _kernel(
            lambda r: r.get("/posts/{id}", (PostController, "show")),
            container=container,
        )
        response = await kernel.handle(_req("GET", "/posts/5"))
        assert response.text == "<posts/show.html:id=5>"
        assert isinstance(container.resolve(ViewRenderer), ViewRenderer)

    async def test_unbound_view_renderer_is_a_server_error(self) -> None:
        renderer = RecordingRenderer()
        kernel = _kernel(
            lambda r: r.get("/posts/{id}", (PostController, "show")),
            renderer=renderer,
        )
        response = await kernel.handle(_req("GET", "/posts/5"))
        assert response.status == 500
        assert isinstance(renderer.errors[0], UnresolvableDependency)


class TestApiTargets:
    async def test_structured_result_on_plain_route_fails(self) -> None:
        renderer = RecordingRenderer()
        kernel = _kernel(
            lambda r: r.get("/users/{id}/data", (UserController, "data")),
            renderer=renderer,
        )
        response = await kernel.handle(_req("GET", "/users/1/data"))
        assert response.status == 500
        assert isinstance(renderer.errors[0], ConfigurationError)

    async def test_route_api_flag(self) -> None:
        kernel = _kernel(lambda r: r.get("/users/{id}/data", (UserController, "data")).api())
        response = await kernel.handle(_req("GET", "/users/1/data"))
        assert json.loads(response.text) == {"id": "1", "name": "user-1"}

    async def test_group_api_flag(self) -> None:
        kernel = _kernel(
            lambda r: r.group(lambda g: g.get("/items", lambda: [1]), prefix="/v1", api=True)
        )
        assert json.loads((await kernel.handle(_req("GET", "/v1/items"))).text) == [1]

    async def test_handler_in_api_package(self) -> None:
        kernel = _kernel(lambda r: r.get("/users", (ApiUserController, "index")))
        assert json.loads((await kernel.handle(_req("GET", "/users"))).text) == [1, 2, 3]

    async def test_configured_api_prefix(self) -> None:
        kernel = _kernel(
            lambda r: r.get("/api/stats", lambda: {"hits": 3}),
            config=AppConfig(api_prefixes=("/api",)),
        )
        response = await kernel.handle(_req("GET", "/api/stats"))
        assert json.loads(response.text) == {"hits": 3}

    def test_prefix_matches_whole_segments(self) -> None:
        kernel = _kernel(lambda r: r.get("/apiary", lambda: "bees"), config=AppConfig(api_prefixes=("/api",)))
        assert not kernel.is_api_target(kernel.router.routes[0], "/apiary")


class TestMiddlewareDispatch:
    async def test_global_then_group_then_route_order(self) -> None:
        log: list[str] = []

        def recorder(label: str):
            async def mw(request, next):
                log.append(label)
                return await next(request)

            return mw

        def register(r: Router) -> None:
            r.group(
                lambda g: g.get("/x", lambda: "ok").middleware(recorder("route")),
                middleware=[recorder("group")],
            )

        kernel = _kernel(register, middleware=[recorder("global")])
        await kernel.handle(_req("GET", "/x"))
        assert log == ["global", "group", "route"]

    async def test_short_circuit_value_is_normalized(self) -> None:
        reached: list[bool] = []

        async def gate(request, next):
            return "denied"

        def handler() -> str:
            reached.append(True)
            return "secret"

        kernel = _kernel(lambda r: r.get("/secret", handler).middleware(gate))
        response = await kernel.handle(_req("GET", "/secret"))
        assert response.text == "denied"
        assert reached == []

    async def test_short_circuit_none_is_empty_response(self) -> None:
        async def gate(request, next):
            return None

        kernel = _kernel(lambda r: r.get("/", lambda: "hi").middleware(gate))
        response = await kernel.handle(_req("GET", "/"))
        assert response.status == 200
        assert response.text == ""

    async def test_named_middleware_from_request_scope(self) -> None:
        async def tag(request, next):
            return (await next(request)).with_header("X-Tag", "1")

        container = Container()
        container.instance("tag", tag)
        kernel = _kernel(lambda r: r.get("/", lambda: "hi").middleware("tag"), container=container)
        assert (await kernel.handle(_req("GET", "/"))).header("X-Tag") == "1"

    async def test_unknown_named_middleware_renders_configuration_error(self) -> None:
        renderer = RecordingRenderer()
        kernel = _kernel(lambda r: r.get("/", lambda: "hi").middleware("ghost"), renderer=renderer)
        response = await kernel.handle(_req("GET", "/"))
        assert response.status == 500
        assert isinstance(renderer.errors[0], ConfigurationError)


class TestFailures:
    async def test_not_found_rendered_once(self) -> None:
        renderer = RecordingRenderer()
        kernel = _kernel(lambda r: r.get("/", lambda: "hi"), renderer=renderer)
        response = await kernel.handle(_req("GET", "/missing"))
        assert response.status == 404
        assert len(renderer.errors) == 1
        assert isinstance(renderer.errors[0], NotFound)

    async def test_business_exception_wrapped(self) -> None:
        renderer = RecordingRenderer()
        kernel = _kernel(lambda r: r.post("/boom", (UserController, "explode")), renderer=renderer)
        response = await kernel.handle(_req("POST", "/boom"))
        assert response.status == 500
        (failure,) = renderer.errors
        assert isinstance(failure, HandlerFailure)
        assert isinstance(failure.original, ValueError)
        assert failure.__cause__ is failure.original
        assert failure.method == "POST"
        assert failure.path == "/boom"

    async def test_middleware_exception_wrapped(self) -> None:
        async def broken(request, next):
            raise KeyError("session")

        renderer = RecordingRenderer()
        kernel = _kernel(lambda r: r.get("/", lambda: "hi"), middleware=[broken], renderer=renderer)
        await kernel.handle(_req("GET", "/"))
        assert isinstance(renderer.errors[0].original, KeyError)

    async def test_http_error_from_handler_not_wrapped(self) -> None:
        def forbidden() -> str:
            raise HTTPError(403, "nope")

        renderer = RecordingRenderer()
        kernel = _kernel(lambda r: r.get("/", forbidden), renderer=renderer)
        response = await kernel.handle(_req("GET", "/"))
        assert response.status == 403
        assert renderer.errors[0].detail == "nope"

    async def test_async_renderer_awaited(self) -> None:
        kernel = _kernel(lambda r: r.get("/", lambda: "hi"), renderer=AsyncRenderer())
        response = await kernel.handle(_req("GET", "/nowhere"))
        assert response.status == 599
        assert response.text == "async rendered"

    async def test_default_renderer_hides_details(self) -> None:
        def crash() -> str:
            raise RuntimeError("database password is hunter2")

        kernel = _kernel(lambda r: r.get("/", crash))
        response = await kernel.handle(_req("GET", "/"))
        assert response.status == 500
        assert "hunter2" not in response.text

    async def test_unresolvable_controller_reported(self) -> None:
        class NeedsPort:
            def __init__(self, port: int) -> None:
                self.port = port

            def index(self) -> str:
                return "never"

        renderer = RecordingRenderer()
        kernel = _kernel(lambda r: r.get("/", (NeedsPort, "index")), renderer=renderer)
        response = await kernel.handle(_req("GET", "/"))
        assert response.status == 500
        assert "port" in str(renderer.errors[0])


class TestStates:
    async def test_successful_dispatch_walks_all_states(self, caplog: pytest.LogCaptureFixture) -> None:
        kernel = _kernel(lambda r: r.get("/", lambda: "hi"))
        with caplog.at_level("DEBUG", logger="wren.kernel"):
            await kernel.handle(_req("GET", "/"))
        messages = " ".join(record.getMessage() for record in caplog.records)
        for state in (
            DispatchState.MATCHING,
            DispatchState.COMPOSING,
            DispatchState.RESOLVING,
            DispatchState.EXECUTING,
            DispatchState.NORMALIZING,
            DispatchState.DONE,
        ):
            assert f"-> {state.value}" in messages
        assert "-> failed" not in messages

    async def test_failed_dispatch_logs_failed(self, caplog: pytest.LogCaptureFixture) -> None:
        kernel = _kernel(lambda r: r.get("/", lambda: "hi"), renderer=RecordingRenderer())
        with caplog.at_level("DEBUG", logger="wren.kernel"):
            await kernel.handle(_req("GET", "/missing"))
        messages = " ".join(record.getMessage() for record in caplog.records)
        assert "matching -> failed" in messages
