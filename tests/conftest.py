"""Shared fixtures: request-state builders and validated test applications."""

import typing

import fastapi
import httpx
import pytest
import starlette.requests

import schemagate.error_handling
import schemagate.exchange
import schemagate.middleware


def _encode_headers(headers: typing.Iterable[tuple[str, str]]) -> list[tuple[bytes, bytes]]:
    return [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in headers]


@pytest.fixture
def make_starlette_request():
    """
    Build a Starlette request from its parts without a server.

    ``headers`` is a list of pairs so that repeated headers can be expressed.
    """

    def _make_starlette_request(
        method: str = "GET",
        path: str = "/",
        headers: typing.Iterable[tuple[str, str]] = (),
        query_string: bytes = b"",
        path_params: dict[str, typing.Any] | None = None,
        body: bytes = b"",
    ) -> starlette.requests.Request:
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "root_path": "",
            "scheme": "http",
            "server": ("testserver", 80),
            "headers": _encode_headers(headers),
            "query_string": query_string,
            "path_params": path_params or {},
        }
        body_sent = False

        async def receive():
            nonlocal body_sent
            if body_sent:
                return {"type": "http.disconnect"}
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        return starlette.requests.Request(scope, receive)

    return _make_starlette_request


@pytest.fixture
def make_request_state(make_starlette_request):
    """Build a ``RequestState`` whose body is given already parsed."""

    def _make_request_state(body: typing.Any = None, **request_parts) -> schemagate.exchange.RequestState:
        return schemagate.exchange.RequestState(make_starlette_request(**request_parts), body=body)

    return _make_request_state


@pytest.fixture
def build_application():
    """
    Build a FastAPI application serving the given routes behind the
    error handlers and the correlation-ID middleware.
    """

    def _build_application(*routes) -> fastapi.FastAPI:
        app = fastapi.FastAPI()
        schemagate.error_handling.register_error_handlers(app)
        app.add_middleware(schemagate.middleware.CorrelationIdMiddleware)
        app.router.routes.extend(routes)
        return app

    return _build_application


@pytest.fixture
def client_for():
    """Return a factory for httpx clients talking to an application in-process."""

    def _client_for(app) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=app)
        return httpx.AsyncClient(transport=transport, base_url="http://testserver")

    return _client_for

