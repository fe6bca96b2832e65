"""Shared fixtures for route integration tests."""

import httpx
import pytest
import pytest_asyncio

import schemagate.routes.health_routes
import schemagate.routes.todo_routes
import schemagate.services.todo_repository


@pytest.fixture
def todo_repository():
    return schemagate.services.todo_repository.TodoRepository()


@pytest.fixture
def test_app(build_application, todo_repository):
    app = build_application(
        *schemagate.routes.health_routes.health_routes,
        *schemagate.routes.todo_routes.todo_routes,
    )
    app.state.todo_repository = todo_repository
    return app


@pytest_asyncio.fixture
async def client(test_app):
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
