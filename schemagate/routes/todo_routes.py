"""
Route definitions for the example todo API.

Every route is a validated handler chain:

- ``POST /todo`` and ``GET /todo`` use a single response schema.
- ``GET``, ``PUT`` and ``DELETE /todo/{todo_id}`` use status-keyed
  response schemas, attached with ``use()``, so that the 404 body and the
  empty 204 are checked against their own schemas.
"""

import typing
import uuid

import pydantic
import structlog

import schemagate.composer
import schemagate.exchange
import schemagate.routing
import schemagate.schemas
import schemagate.services.todo_repository

logger = structlog.get_logger()

TodoTitle = typing.Annotated[str, pydantic.StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]

TodoDescription = typing.Annotated[str, pydantic.StringConstraints(strip_whitespace=True, max_length=2000)]


# ──────────────────────────────────────────────────────────────────────────────
#  Schemas
# ──────────────────────────────────────────────────────────────────────────────


class CreateTodoRequest(pydantic.BaseModel):
    """Request body for creating a todo item."""

    title: TodoTitle = pydantic.Field(..., description="Short title of the todo item.")

    description: TodoDescription | None = pydantic.Field(
        default=None,
        description="Optional longer description.",
    )


class UpdateTodoRequest(CreateTodoRequest):
    """Request body for replacing a todo item's title and description."""


class TodoResponse(pydantic.BaseModel):
    """A todo item as returned by the API."""

    model_config = pydantic.ConfigDict(from_attributes=True)

    id: uuid.UUID = pydantic.Field(..., description="Unique identifier of the todo item.")

    title: TodoTitle

    description: TodoDescription | None = None


class ListTodosQuery(pydantic.BaseModel):
    """Query string accepted by ``GET /todo``."""

    limit: int = pydantic.Field(default=50, ge=1, le=100, description="Maximum number of items returned.")

    title_contains: str | None = pydantic.Field(
        default=None,
        description="Case-insensitive substring the title must contain.",
    )


class TodoPathParameters(pydantic.BaseModel):
    todo_id: uuid.UUID = pydantic.Field(..., description="Identifier of the todo item.")


class NotFoundResponse(pydantic.BaseModel):
    """Body of a 404 answer for an unknown todo item."""

    message: str


def _todo_repository(
    request: schemagate.exchange.RequestState,
) -> schemagate.services.todo_repository.TodoRepository:
    return request.app.state.todo_repository


def _not_found_body(todo_id: uuid.UUID) -> dict[str, str]:
    return {"message": f"Todo item {todo_id} does not exist."}


# ──────────────────────────────────────────────────────────────────────────────
#  Handlers
# ──────────────────────────────────────────────────────────────────────────────


async def create_todo(
    request: schemagate.exchange.RequestState,
    response: typing.Any,
    call_next: schemagate.routing.CallNext,
) -> None:
    todo_item = _todo_repository(request).create(
        title=request.body.title,
        description=request.body.description,
    )
    logger.info("todo_created", todo_id=str(todo_item.id))
    response.json(todo_item)


async def list_todos(
    request: schemagate.exchange.RequestState,
    response: typing.Any,
    call_next: schemagate.routing.CallNext,
) -> None:
    response.json(
        _todo_repository(request).list_items(
            limit=request.query.limit,
            title_contains=request.query.title_contains,
        )
    )


async def get_todo(
    request: schemagate.exchange.RequestState,
    response: typing.Any,
    call_next: schemagate.routing.CallNext,
) -> None:
    todo_id = request.params.todo_id
    todo_item = _todo_repository(request).get(todo_id)
    if todo_item is None:
        response.status(404).json(_not_found_body(todo_id))
        return
    response.status(200).json(todo_item)


async def update_todo(
    request: schemagate.exchange.RequestState,
    response: typing.Any,
    call_next: schemagate.routing.CallNext,
) -> None:
    todo_id = request.params.todo_id
    todo_item = _todo_repository(request).update(
        todo_id,
        title=request.body.title,
        description=request.body.description,
    )
    if todo_item is None:
        response.status(404).json(_not_found_body(todo_id))
        return
    logger.info("todo_updated", todo_id=str(todo_id))
    response.status(200).json(todo_item)


async def delete_todo(
    request: schemagate.exchange.RequestState,
    response: typing.Any,
    call_next: schemagate.routing.CallNext,
) -> None:
    todo_id = request.params.todo_id
    if not _todo_repository(request).delete(todo_id):
        response.status(404).json(_not_found_body(todo_id))
        return
    logger.info("todo_deleted", todo_id=str(todo_id))
    response.send_status(204)


# ──────────────────────────────────────────────────────────────────────────────
#  Routes
# ──────────────────────────────────────────────────────────────────────────────

todo_routes = [
    schemagate.routing.route(
        "/todo",
        schemagate.composer.validate(body=CreateTodoRequest, response=TodoResponse),
        create_todo,
        methods=["POST"],
        name="create_todo",
    ),
    schemagate.routing.route(
        "/todo",
        schemagate.composer.validate(query=ListTodosQuery, response=list[TodoResponse]),
        list_todos,
        methods=["GET"],
        name="list_todos",
    ),
    schemagate.routing.route(
        "/todo/{todo_id}",
        schemagate.composer.validate(
            params=TodoPathParameters,
            responses={200: TodoResponse, 404: NotFoundResponse},
        ).use(get_todo),
        methods=["GET"],
        name="get_todo",
    ),
    schemagate.routing.route(
        "/todo/{todo_id}",
        schemagate.composer.validate(
            params=TodoPathParameters,
            body=UpdateTodoRequest,
            responses={200: TodoResponse, 404: NotFoundResponse},
        ).use(update_todo),
        methods=["PUT"],
        name="update_todo",
    ),
    schemagate.routing.route(
        "/todo/{todo_id}",
        schemagate.composer.validate(
            params=TodoPathParameters,
            responses={204: schemagate.schemas.NO_CONTENT, 404: NotFoundResponse},
        ).use(delete_todo),
        methods=["DELETE"],
        name="delete_todo",
    ),
]
