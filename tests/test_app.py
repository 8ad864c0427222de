"""Tests for wren.app — App lifecycle, registration, and entry points."""

import json
import logging

import pytest

from wren.app import App
from wren.config import AppConfig
from wren.container import Container
from wren.errors import ConfigurationError, URLBuildError
from wren.http.request import Request
from wren.http.response import Response
from wren.providers import ServiceProvider
from wren.routing.router import Router
from wren.testing import TestClient


class Greeter:
    def __init__(self, config: AppConfig) -> None:
        self.debug = config.debug

    def greet(self, name: str) -> str:
        return f"hello {name}"


class GreetingController:
    def __init__(self, greeter: Greeter) -> None:
        self.greeter = greeter

    def show(self, name: str) -> str:
        return self.greeter.greet(name)


class GreeterProvider(ServiceProvider):
    booted: list[str] = []

    def register(self) -> None:
        self.container.singleton(Greeter)

    def boot(self) -> None:
        GreeterProvider.booted.append(type(self.container.resolve(Greeter)).__name__)


class TestAppRegistration:
    def test_route_decorator_returns_function(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return "hello"

        assert index() == "hello"

    def test_route_defaults_to_configured_methods(self) -> None:
        app = App(AppConfig(default_methods=("GET", "HEAD")))

        @app.route("/")
        def index():
            return "hello"

        app.freeze()
        assert app.router.routes[0].methods == frozenset({"GET", "HEAD"})

    def test_routes_callback_runs_once_at_freeze(self) -> None:
        app = App()
        calls: list[Router] = []

        @app.routes
        def web(router: Router) -> None:
            calls.append(router)
            router.get("/", lambda: "home")

        assert calls == []
        app.freeze()
        app.freeze()
        assert calls == [app.router]

    def test_setup_after_freeze_raises(self) -> None:
        app = App()
        app.freeze()
        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.add_middleware(lambda request, next: next(request))
        with pytest.raises(RuntimeError):
            app.bind("x", 1)
        with pytest.raises(RuntimeError):
            app.routes(lambda router: None)

    def test_register_provider_class(self) -> None:
        GreeterProvider.booted.clear()
        app = App()
        provider = app.register(GreeterProvider)
        assert isinstance(provider, GreeterProvider)
        assert app.container.bound(Greeter)
        assert GreeterProvider.booted == []
        app.freeze()
        assert GreeterProvider.booted == ["Greeter"]

    def test_register_rejects_non_providers(self) -> None:
        with pytest.raises(ConfigurationError):
            App().register(Greeter)

    def test_root_container_binds_itself_and_config(self) -> None:
        config = AppConfig(debug=True)
        app = App(config)
        assert app.container.resolve(Container) is app.container
        assert app.container.resolve(AppConfig) is config
        assert app.container.resolve(Greeter).debug is True

    def test_log_level_applied(self) -> None:
        App(AppConfig(log_level="warning"))
        assert logging.getLogger("wren").level == logging.WARNING
        logging.getLogger("wren").setLevel(logging.NOTSET)


class TestUrlFor:
    def test_named_route(self) -> None:
        app = App()

        @app.route("/users/{id}", name="users.show")
        def show(id: str) -> str:
            return id

        assert app.url_for("users.show", id=5) == "/users/5"

    def test_missing_route(self) -> None:
        app = App()
        with pytest.raises(URLBuildError):
            app.url_for("nope")


class TestHandle:
    async def test_controller_through_test_client(self) -> None:
        app = App()
        app.register(GreeterProvider)
        app.routes(lambda r: r.get("/greet/{name}", (GreetingController, "show")))
        async with TestClient(app) as client:
            response = await client.get("/greet/ada")
        assert response.status == 200
        assert response.text == "hello ada"

    async def test_api_decorator_flag(self) -> None:
        app = App()

        @app.route("/stats", api=True)
        def stats() -> dict[str, int]:
            return {"users": 2}

        async with TestClient(app) as client:
            response = await client.get("/stats")
        assert json.loads(response.text) == {"users": 2}

    async def test_query_and_form_input(self) -> None:
        app = App()

        @app.route("/search", methods=["GET", "POST"])
        def search() -> str:
            from wren.context import get_request

            request = get_request()
            return f"{request.input('q')}|{request.query.get('page')}"

        async with TestClient(app) as client:
            by_query = await client.get("/search?q=wren&page=2")
            by_form = await client.post("/search", form={"q": "bird"})
        assert by_query.text == "wren|2"
        assert by_form.text == "bird|None"

    async def test_json_body_exposed_as_form(self) -> None:
        app = App()

        @app.route("/echo", methods=["POST"])
        def echo() -> str:
            from wren.context import get_request

            return get_request().input("name") or ""

        async with TestClient(app) as client:
            response = await client.post("/echo", json={"name": "ada"})
        assert response.text == "ada"

    async def test_custom_renderer(self) -> None:
        class Plain:
            def render(self, error: Exception) -> Response:
                return Response("custom", status=418)

        app = App(renderer=Plain())
        async with TestClient(app) as client:
            response = await client.get("/nowhere")
        assert response.status == 418

    async def test_not_found_default_rendering(self) -> None:
        async with TestClient(App()) as client:
            response = await client.get("/nowhere")
        assert response.status == 404


class TestDispatchSync:
    def test_dispatch_runs_to_completion(self) -> None:
        app = App()

        @app.route("/users/{id}")
        async def show(id: str) -> str:
            return f"user {id}"

        response = app.dispatch(Request.build("GET", "/users/7"))
        assert response.status == 200
        assert response.text == "user 7"


class TestASGI:
    async def test_http_request(self) -> None:
        app = App()

        @app.route("/items", methods=["POST"])
        def create() -> Response:
            from wren.context import get_request

            request = get_request()
            return Response(f"created {request.input('name')}", status=201)

        messages = [
            {"type": "http.request", "body": b"name=wid", "more_body": True},
            {"type": "http.request", "body": b"get", "more_body": False},
        ]
        sent: list[dict] = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message)

        scope = {
            "type": "http",
            "method": "POST",
            "path": "/items",
            "query_string": b"",
            "headers": [(b"content-type", b"application/x-www-form-urlencoded")],
        }
        await app(scope, receive, send)
        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 201
        assert (b"content-length", b"14") in sent[0]["headers"]
        assert sent[1]["body"] == b"created widget"

    async def test_lifespan_startup_freezes(self) -> None:
        app = App()
        incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent: list[dict] = []

        async def receive():
            return incoming.pop(0)

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert [m["type"] for m in sent] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]
        assert app.frozen

    async def test_lifespan_startup_failure_reported(self) -> None:
        app = App()
        app.routes(lambda r: r.get("/a", lambda: "a").name("dup"))
        app.routes(lambda r: r.get("/b", lambda: "b").name("dup"))
        incoming = [{"type": "lifespan.startup"}]
        sent: list[dict] = []

        async def receive():
            return incoming.pop(0)

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent[0]["type"] == "lifespan.startup.failed"
        assert "Duplicate route name" in sent[0]["message"]
