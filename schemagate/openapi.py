"""
OpenAPI 3.0 document generation from validated routes.

The emitter works in two steps:

1. ``collect_validated_routes`` walks a Starlette routing tree (an
   application, a router, or a plain list of routes), descending into
   ``Mount``s with their path prefixes, and returns one ``ValidatedRoute``
   per (method, path) whose endpoint is a ``HandlerChain`` carrying a
   schema contract.
2. ``build_openapi_document`` turns that explicit list into a document.

``generate_openapi_spec(app, config)`` chains the two.

Mapping
-------
- ``params``, ``query`` and ``headers`` schemas become ``parameters``
  entries, one per property of the object schema (path parameters are
  always required).
- ``body`` becomes an ``application/json`` ``requestBody``.
- A simple-mode ``response`` becomes a single ``"200"`` response.
- Typed-mode ``responses`` become one entry per status code; a status
  mapped to ``None`` is documented without ``content``.
- Nested model definitions are published under ``components.schemas``,
  with one name per model across the whole document.
- Documents declaring a 3.0.x version get 3.0-dialect schemas
  (``nullable``, one-value ``enum``, boolean exclusive bounds).
"""

import dataclasses
import json
import re
import typing

import pydantic
import starlette.routing
import yaml

import schemagate.contract
import schemagate.routing
import schemagate.schemas

_PATH_PARAMETER_CONVERTOR_PATTERN = re.compile(r"\{([^}:]+):[^}]+\}")

_COMPONENT_REFERENCE_PREFIX = schemagate.schemas.OPENAPI_REF_TEMPLATE.removesuffix("{model}")

_PARAMETER_LOCATIONS: tuple[tuple[str, str], ...] = (
    ("params", "path"),
    ("query", "query"),
    ("headers", "header"),
)

# ──────────────────────────────────────────────────────────────────────────────
#  Document configuration
# ──────────────────────────────────────────────────────────────────────────────


class OpenApiInfo(pydantic.BaseModel):
    """The ``info`` object of the generated document."""

    version: str = pydantic.Field(default="1.0.0", description="The version of the described API.")

    title: str = pydantic.Field(default="API", description="The title of the described API.")

    description: str | None = pydantic.Field(
        default="Auto Generated API by schemagate",
        description="A short description of the described API.",
    )


class OpenApiServer(pydantic.BaseModel):
    """One entry of the ``servers`` list."""

    url: str
    description: str | None = None


class OpenApiDocumentConfiguration(pydantic.BaseModel):
    """
    Top-level settings merged into the generated document.

    Every field has a default, so ``OpenApiDocumentConfiguration()`` (or no
    configuration at all) yields a valid document header.
    """

    openapi: str = pydantic.Field(default="3.0.0", description="The OpenAPI version string.")

    info: OpenApiInfo = pydantic.Field(default_factory=OpenApiInfo)

    servers: list[OpenApiServer] | None = pydantic.Field(
        default=None,
        description="Servers hosting the API.  Omitted from the document when not set.",
    )


# ──────────────────────────────────────────────────────────────────────────────
#  Route collection
# ──────────────────────────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class ValidatedRoute:
    """A registered route that carries a schema contract."""

    method: str
    path: str
    contract: schemagate.contract.SchemaContract


def normalise_openapi_path(path: str) -> str:
    """
    Convert a Starlette route path into an OpenAPI path template.

    Convertors are dropped (``{item_id:int}`` → ``{item_id}``) and a
    trailing slash is trimmed, except for the root path.
    """
    openapi_path = _PATH_PARAMETER_CONVERTOR_PATTERN.sub(r"{\1}", path)
    if len(openapi_path) > 1:
        openapi_path = openapi_path.rstrip("/")
    return openapi_path or "/"


def _documented_methods(route: starlette.routing.Route) -> list[str]:
    methods = set(route.methods or {"GET"})
    # Starlette adds HEAD to every GET route; document only the GET.
    if "GET" in methods:
        methods.discard("HEAD")
    return sorted(methods)


def collect_validated_routes(
    routes: typing.Iterable[starlette.routing.BaseRoute],
    base_path: str = "",
) -> list[ValidatedRoute]:
    """
    Walk a routing tree and list every route with a schema contract.

    Args:
        routes: The routes to walk, typically ``app.routes``.
        base_path: Prefix accumulated from enclosing mounts.
    """
    validated_routes: list[ValidatedRoute] = []

    for route in routes:
        if isinstance(route, starlette.routing.Mount):
            validated_routes.extend(collect_validated_routes(route.routes, base_path + route.path))
            continue

        if not isinstance(route, starlette.routing.Route):
            continue
        if not isinstance(route.endpoint, schemagate.routing.HandlerChain):
            continue

        contract = route.endpoint.contract
        if contract is None:
            continue

        route_path = normalise_openapi_path(base_path + route.path)
        for method in _documented_methods(route):
            validated_routes.append(ValidatedRoute(method=method, path=route_path, contract=contract))

    return validated_routes


# ──────────────────────────────────────────────────────────────────────────────
#  Document building
# ──────────────────────────────────────────────────────────────────────────────


def _json_content(json_schema: dict[str, typing.Any]) -> dict[str, typing.Any]:
    return {"application/json": {"schema": json_schema}}


def collect_schema_inputs(
    contract: schemagate.contract.SchemaContract,
) -> list[schemagate.schemas.SchemaInput]:
    """
    List the ``(slot, mode, adapter)`` triples documented for one contract.

    Slots are the request field names, ``"response"`` for a single
    response schema, and ``("response", status_code)`` per typed status.
    Statuses without a body have nothing to document.
    """
    schema_inputs: list[schemagate.schemas.SchemaInput] = []

    for field_name in ("params", "query", "headers", "body"):
        adapter = contract.request_adapter(field_name)
        if adapter is not None:
            schema_inputs.append((field_name, "validation", adapter))

    if contract.response_mode is schemagate.contract.ResponseMode.SIMPLE:
        schema_inputs.append(("response", "serialization", contract.simple_response_adapter()))
    elif contract.response_mode is schemagate.contract.ResponseMode.TYPED:
        for status_code in sorted(contract.responses):
            if not schemagate.schemas.is_no_body_schema(contract.responses[status_code]):
                schema_inputs.append(
                    (("response", status_code), "serialization", contract.response_adapter_for_status(status_code))
                )

    return schema_inputs


def _resolve_reference(
    json_schema: dict[str, typing.Any],
    definitions: dict[str, typing.Any],
) -> dict[str, typing.Any]:
    reference = json_schema.get("$ref")
    if not isinstance(reference, str) or not reference.startswith(_COMPONENT_REFERENCE_PREFIX):
        return json_schema
    return definitions[reference.removeprefix(_COMPONENT_REFERENCE_PREFIX)]


def _collect_references(node: typing.Any, references: set[str]) -> None:
    if isinstance(node, dict):
        for keyword, value in node.items():
            if keyword == "$ref" and isinstance(value, str) and value.startswith(_COMPONENT_REFERENCE_PREFIX):
                references.add(value.removeprefix(_COMPONENT_REFERENCE_PREFIX))
            else:
                _collect_references(value, references)
    elif isinstance(node, list):
        for item in node:
            _collect_references(item, references)


def _referenced_definitions(
    paths: dict[str, typing.Any],
    definitions: dict[str, typing.Any],
) -> dict[str, typing.Any]:
    """Keep the definitions reachable from ``paths``, in their original order."""
    pending: set[str] = set()
    _collect_references(paths, pending)

    referenced: set[str] = set()
    while pending:
        name = pending.pop()
        if name in referenced or name not in definitions:
            continue
        referenced.add(name)
        _collect_references(definitions[name], pending)

    return {name: json_schema for name, json_schema in definitions.items() if name in referenced}


def _build_parameters(
    slot_schemas: typing.Mapping[typing.Hashable, dict[str, typing.Any]],
    definitions: dict[str, typing.Any],
) -> list[dict[str, typing.Any]]:
    parameters: list[dict[str, typing.Any]] = []

    for field_name, parameter_location in _PARAMETER_LOCATIONS:
        field_schema = slot_schemas.get(field_name)
        if field_schema is None:
            continue

        # Parameters are listed one by one, so a model reference is inlined.
        field_schema = _resolve_reference(field_schema, definitions)
        required_names = set(field_schema.get("required", []))

        for parameter_name, parameter_schema in field_schema.get("properties", {}).items():
            parameter: dict[str, typing.Any] = {
                "name": parameter_name,
                "in": parameter_location,
                "required": parameter_location == "path" or parameter_name in required_names,
                "schema": parameter_schema,
            }
            if "description" in parameter_schema:
                parameter["description"] = parameter_schema["description"]
            parameters.append(parameter)

    return parameters


def _build_responses(
    contract: schemagate.contract.SchemaContract,
    slot_schemas: typing.Mapping[typing.Hashable, dict[str, typing.Any]],
) -> dict[str, typing.Any]:
    response_mode = contract.response_mode

    if response_mode is schemagate.contract.ResponseMode.SIMPLE:
        return {"200": {"description": "Success", "content": _json_content(slot_schemas["response"])}}

    if response_mode is schemagate.contract.ResponseMode.TYPED:
        responses: dict[str, typing.Any] = {}
        for status_code in sorted(contract.responses):
            response_object: dict[str, typing.Any] = {"description": str(status_code)}
            response_schema = slot_schemas.get(("response", status_code))
            if response_schema is not None:
                response_object["content"] = _json_content(response_schema)
            responses[str(status_code)] = response_object
        return responses

    return {}


def build_operation(
    contract: schemagate.contract.SchemaContract,
    slot_schemas: typing.Mapping[typing.Hashable, dict[str, typing.Any]],
    definitions: dict[str, typing.Any],
) -> dict[str, typing.Any]:
    """
    Build the OpenAPI operation object for one contract.

    ``slot_schemas`` maps the slots of ``collect_schema_inputs`` to their
    generated JSON Schemas, whose references point into ``definitions``.
    """
    operation: dict[str, typing.Any] = {}

    parameters = _build_parameters(slot_schemas, definitions)
    if parameters:
        operation["parameters"] = parameters

    if "body" in slot_schemas:
        operation["requestBody"] = {"content": _json_content(slot_schemas["body"])}

    operation["responses"] = _build_responses(contract, slot_schemas)
    return operation


def build_openapi_document(
    validated_routes: typing.Iterable[ValidatedRoute],
    configuration: OpenApiDocumentConfiguration | None = None,
) -> dict[str, typing.Any]:
    """
    Build an OpenAPI document from an explicit list of validated routes.

    The schemas of all routes are generated together so that models share
    one set of component names.  Documents declaring an OpenAPI 3.0.x
    version get their schemas in the 3.0 dialect (``nullable`` instead of
    ``null`` unions).
    """
    if configuration is None:
        configuration = OpenApiDocumentConfiguration()

    validated_routes = list(validated_routes)
    schema_inputs = [
        ((route_index, slot), mode, adapter)
        for route_index, validated_route in enumerate(validated_routes)
        for slot, mode, adapter in collect_schema_inputs(validated_route.contract)
    ]
    keyed_schemas, definitions = schemagate.schemas.generate_json_schemas(
        schema_inputs,
        openapi_30=configuration.openapi.startswith("3.0"),
    )

    route_slot_schemas: dict[int, dict[typing.Hashable, dict[str, typing.Any]]] = {}
    for (route_index, slot), json_schema in keyed_schemas.items():
        route_slot_schemas.setdefault(route_index, {})[slot] = json_schema

    paths: dict[str, dict[str, typing.Any]] = {}
    for route_index, validated_route in enumerate(validated_routes):
        path_item = paths.setdefault(validated_route.path, {})
        path_item[validated_route.method.lower()] = build_operation(
            validated_route.contract,
            route_slot_schemas.get(route_index, {}),
            definitions,
        )
    definitions = _referenced_definitions(paths, definitions)

    document: dict[str, typing.Any] = {
        "openapi": configuration.openapi,
        "info": configuration.info.model_dump(exclude_none=True),
    }
    if configuration.servers is not None:
        document["servers"] = [server.model_dump(exclude_none=True) for server in configuration.servers]
    document["paths"] = paths
    if definitions:
        document["components"] = {"schemas": definitions}
    return document


def generate_openapi_spec(
    app: typing.Any,
    config: OpenApiDocumentConfiguration | typing.Mapping[str, typing.Any] | None = None,
) -> dict[str, typing.Any]:
    """
    Generate the OpenAPI document for every validated route of ``app``.

    Args:
        app: A Starlette or FastAPI application, a router, or any object
            with a ``routes`` attribute.
        config: Document settings, as an ``OpenApiDocumentConfiguration``
            or a plain mapping with the same shape.  Missing values fall
            back to the defaults (``openapi`` "3.0.0", ``info.version``
            "1.0.0", ``info.title`` "API").
    """
    if config is None or isinstance(config, OpenApiDocumentConfiguration):
        configuration = config
    else:
        configuration = OpenApiDocumentConfiguration.model_validate(config)

    return build_openapi_document(collect_validated_routes(app.routes), configuration)


def render_openapi_document(
    document: dict[str, typing.Any],
    output_format: typing.Literal["json", "yaml"] = "json",
) -> str:
    """Render a document as JSON or YAML text."""
    if output_format == "yaml":
        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return json.dumps(document, indent=2, ensure_ascii=False)
