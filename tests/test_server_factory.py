"""
Tests for schemagate/server_factory.py: the assembled example service,
including the generated OpenAPI document it serves.
"""

import json

import httpx
import pytest
import pytest_asyncio
import structlog
import yaml

import configuration
import schemagate.server_factory


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def application_configuration():
    return configuration.ApplicationConfiguration(
        _env_file=None,
        openapi_document_title="Todo API",
        openapi_server_urls=["https://api.example.com"],
    )


@pytest_asyncio.fixture
async def client(application_configuration):
    app = schemagate.server_factory.create_application(application_configuration)
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac


class TestBuildOpenapiDocumentConfiguration:

    def test_settings_are_translated(self, application_configuration):
        document_configuration = schemagate.server_factory.build_openapi_document_configuration(
            application_configuration
        )

        assert document_configuration.openapi == "3.0.0"
        assert document_configuration.info.title == "Todo API"
        assert [server.url for server in document_configuration.servers] == ["https://api.example.com"]

    def test_no_server_urls_means_no_servers(self):
        document_configuration = schemagate.server_factory.build_openapi_document_configuration(
            configuration.ApplicationConfiguration(_env_file=None)
        )

        assert document_configuration.servers is None


class TestCreateApplication:

    @pytest.mark.asyncio
    async def test_full_todo_lifecycle(self, client):
        created = await client.post("/todo", json={"title": "Write tests"})
        todo_id = created.json()["id"]

        fetched = await client.get(f"/todo/{todo_id}")
        deleted = await client.delete(f"/todo/{todo_id}")
        missing = await client.get(f"/todo/{todo_id}")

        assert created.status_code == 200
        assert fetched.json()["title"] == "Write tests"
        assert deleted.status_code == 204
        assert missing.status_code == 404
        assert "x-correlation-id" in missing.headers

    @pytest.mark.asyncio
    async def test_openapi_json_is_generated_from_route_contracts(self, client):
        response = await client.get("/openapi.json")

        document = response.json()
        assert document["openapi"] == "3.0.0"
        assert document["info"]["title"] == "Todo API"
        assert document["servers"] == [{"url": "https://api.example.com"}]
        assert set(document["paths"]) == {"/health", "/todo", "/todo/{todo_id}"}
        assert set(document["paths"]["/todo/{todo_id}"]) == {"get", "put", "delete"}
        assert document["paths"]["/todo/{todo_id}"]["delete"]["responses"]["204"] == {"description": "204"}

    @pytest.mark.asyncio
    async def test_openapi_json_uses_the_3_0_schema_dialect(self, client):
        document = (await client.get("/openapi.json")).json()

        serialised_document = json.dumps(document)
        assert '"anyOf"' not in serialised_document
        assert '"type": "null"' not in serialised_document
        todo_response_schema = document["components"]["schemas"]["TodoResponse"]
        assert todo_response_schema["properties"]["description"]["nullable"] is True
        assert todo_response_schema["properties"]["description"]["type"] == "string"
        health_schema = document["components"]["schemas"]["HealthResponse"]
        assert health_schema["properties"]["status"]["enum"] == ["healthy"]

    @pytest.mark.asyncio
    async def test_openapi_yaml_matches_json(self, client):
        json_document = (await client.get("/openapi.json")).json()
        yaml_response = await client.get("/openapi.yaml")

        assert yaml_response.headers["content-type"].startswith("application/yaml")
        assert yaml.safe_load(yaml_response.text) == json_document
