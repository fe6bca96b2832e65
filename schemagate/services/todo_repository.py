"""
In-memory todo storage backing the example service.

The repository lives on ``app.state.todo_repository`` for the lifetime of
the application.  All operations run on the event loop thread and never
await, so no locking is needed.
"""

import uuid

import pydantic


class TodoItem(pydantic.BaseModel):
    """A stored todo item."""

    id: uuid.UUID
    title: str
    description: str | None = None


class TodoRepository:
    """Todo items keyed by ID, in insertion order."""

    def __init__(self) -> None:
        self._todo_items: dict[uuid.UUID, TodoItem] = {}

    def __len__(self) -> int:
        return len(self._todo_items)

    def create(self, title: str, description: str | None = None) -> TodoItem:
        todo_item = TodoItem(id=uuid.uuid4(), title=title, description=description)
        self._todo_items[todo_item.id] = todo_item
        return todo_item

    def list_items(self, limit: int | None = None, title_contains: str | None = None) -> list[TodoItem]:
        """
        Return stored items, oldest first.

        ``title_contains`` filters case-insensitively; ``limit`` caps the
        number of items returned after filtering.
        """
        todo_items = list(self._todo_items.values())
        if title_contains:
            search_text = title_contains.lower()
            todo_items = [item for item in todo_items if search_text in item.title.lower()]
        if limit is not None:
            todo_items = todo_items[:limit]
        return todo_items

    def get(self, todo_id: uuid.UUID) -> TodoItem | None:
        return self._todo_items.get(todo_id)

    def update(
        self,
        todo_id: uuid.UUID,
        title: str,
        description: str | None = None,
    ) -> TodoItem | None:
        """Replace the title and description of an item; ``None`` if it does not exist."""
        if todo_id not in self._todo_items:
            return None
        todo_item = TodoItem(id=todo_id, title=title, description=description)
        self._todo_items[todo_id] = todo_item
        return todo_item

    def delete(self, todo_id: uuid.UUID) -> bool:
        """Remove an item; returns False when it did not exist."""
        return self._todo_items.pop(todo_id, None) is not None
