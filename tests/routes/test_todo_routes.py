"""Tests for the /todo routes."""

import typing
import uuid

import pytest

import schemagate.exchange
import schemagate.routes.health_routes
import schemagate.routes.todo_routes
import schemagate.routing


class TestCreateTodo:

    @pytest.mark.asyncio
    async def test_creates_and_returns_item(self, client, todo_repository):
        response = await client.post("/todo", json={"title": "  Buy milk  ", "description": "Semi-skimmed"})

        assert response.status_code == 200
        body = response.json()
        assert uuid.UUID(body["id"])
        assert body["title"] == "Buy milk"
        assert body["description"] == "Semi-skimmed"
        assert len(todo_repository) == 1

    @pytest.mark.asyncio
    async def test_blank_title_is_rejected(self, client, todo_repository):
        response = await client.post("/todo", json={"title": "   "})

        assert response.status_code == 400
        [error] = response.json()["errors"]
        assert error["path"] == ["title"]
        assert error["location"] == "body"
        assert len(todo_repository) == 0

    @pytest.mark.asyncio
    async def test_missing_body_is_rejected(self, client):
        response = await client.post("/todo")

        assert response.status_code == 400
        assert response.json()["errors"][0]["location"] == "body"


class TestListTodos:

    @pytest.mark.asyncio
    async def test_lists_items_with_filter_and_limit(self, client, todo_repository):
        todo_repository.create("Buy milk")
        todo_repository.create("Walk dog")
        todo_repository.create("Buy bread")

        response = await client.get("/todo", params={"title_contains": "buy", "limit": "1"})

        assert response.status_code == 200
        assert [item["title"] for item in response.json()] == ["Buy milk"]

    @pytest.mark.asyncio
    async def test_limit_out_of_range_is_rejected(self, client):
        response = await client.get("/todo", params={"limit": "0"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["location"] == "query"


class TestGetTodo:

    @pytest.mark.asyncio
    async def test_returns_existing_item(self, client, todo_repository):
        todo_item = todo_repository.create("Buy milk")

        response = await client.get(f"/todo/{todo_item.id}")

        assert response.status_code == 200
        assert response.json() == {"id": str(todo_item.id), "title": "Buy milk", "description": None}

    @pytest.mark.asyncio
    async def test_unknown_item_is_404_with_message(self, client):
        todo_id = uuid.uuid4()

        response = await client.get(f"/todo/{todo_id}")

        assert response.status_code == 404
        assert response.json() == {"message": f"Todo item {todo_id} does not exist."}

    @pytest.mark.asyncio
    async def test_malformed_id_is_rejected(self, client):
        response = await client.get("/todo/not-a-uuid")

        assert response.status_code == 400
        [error] = response.json()["errors"]
        assert error["location"] == "params"
        assert error["path"] == ["todo_id"]


class TestUpdateTodo:

    @pytest.mark.asyncio
    async def test_replaces_title_and_description(self, client, todo_repository):
        todo_item = todo_repository.create("Buy milk", "Semi-skimmed")

        response = await client.put(f"/todo/{todo_item.id}", json={"title": "Buy oat milk"})

        assert response.status_code == 200
        assert response.json()["title"] == "Buy oat milk"
        assert todo_repository.get(todo_item.id).description is None

    @pytest.mark.asyncio
    async def test_unknown_item_is_404(self, client):
        response = await client.put(f"/todo/{uuid.uuid4()}", json={"title": "Anything"})

        assert response.status_code == 404


class TestDeleteTodo:

    @pytest.mark.asyncio
    async def test_deletes_with_empty_204(self, client, todo_repository):
        todo_item = todo_repository.create("Buy milk")

        response = await client.delete(f"/todo/{todo_item.id}")

        assert response.status_code == 204
        assert response.content == b""
        assert todo_repository.get(todo_item.id) is None

    @pytest.mark.asyncio
    async def test_unknown_item_is_404(self, client):
        response = await client.delete(f"/todo/{uuid.uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_collection_rejects_delete_with_allow_header(self, client):
        response = await client.delete("/todo")

        assert response.status_code == 405
        assert response.headers["allow"] == "GET, HEAD, POST"


class TestHandlerSignatures:

    @pytest.mark.parametrize(
        "handler",
        [
            schemagate.routes.todo_routes.create_todo,
            schemagate.routes.todo_routes.list_todos,
            schemagate.routes.todo_routes.get_todo,
            schemagate.routes.todo_routes.update_todo,
            schemagate.routes.todo_routes.delete_todo,
            schemagate.routes.health_routes.health_check,
        ],
    )
    def test_handlers_declare_the_chain_signature(self, handler):
        type_hints = typing.get_type_hints(handler)

        assert type_hints["request"] is schemagate.exchange.RequestState
        assert type_hints["call_next"] == schemagate.routing.CallNext
        assert type_hints["return"] is type(None)
