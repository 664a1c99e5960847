"""CRUD endpoints for todos.

Every successful mutation schedules one change notification as a background
task, so it goes out only after the commit.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from sqlmodel import Session, select

from todo_api.broadcaster import ChangeBroadcaster, change_event, get_broadcaster
from todo_api.database import get_session
from todo_api.models import (
    Category,
    ReorderItem,
    Todo,
    TodoCreate,
    TodoStatus,
    TodoUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/todos", tags=["todos"])


def _get_todo_or_404(session: Session, todo_id: str) -> Todo:
    todo = session.get(Todo, todo_id)
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


def _check_category(session: Session, category_id: Optional[str]) -> None:
    if category_id is None:
        return
    category = session.get(Category, category_id)
    if category is None or category.deleted:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category_id}")


@router.get("")
def list_todos(
    status: Optional[TodoStatus] = None,
    category_id: Optional[str] = None,
    include_deleted: bool = False,
    session: Session = Depends(get_session),
) -> list[Todo]:
    """List todos, most urgent first.

    Soft-deleted rows are left out unless *include_deleted* is set.
    """
    statement = select(Todo)
    if status is not None:
        statement = statement.where(Todo.status == status)
    if category_id is not None:
        statement = statement.where(Todo.category_id == category_id)
    if not include_deleted:
        statement = statement.where(Todo.deleted == False)  # noqa: E712
    statement = statement.order_by(
        Todo.priority.desc(),
        Todo.due_at.is_(None),
        Todo.due_at.asc(),
        Todo.sort_order.asc(),
        Todo.created_at.asc(),
    )
    return list(session.exec(statement).all())


@router.post("", status_code=201)
def create_todo(
    body: TodoCreate,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> Todo:
    """Create a new todo with status ``todo``."""
    _check_category(session, body.category_id)
    todo = Todo.model_validate(body)
    session.add(todo)
    session.commit()
    session.refresh(todo)
    logger.info("Created todo %s", todo.id)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("todo.created", todo.id, request_id)
    )
    return todo


@router.post("/reorder")
def reorder_todos(
    items: list[ReorderItem],
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> dict:
    """Apply new sort positions in one transaction. Unknown ids are skipped."""
    now = datetime.now(timezone.utc)
    for item in items:
        todo = session.get(Todo, item.id)
        if todo is None:
            logger.debug("Reorder skipped unknown todo %s", item.id)
            continue
        todo.sort_order = item.sort_order
        todo.updated_at = now
        session.add(todo)
    session.commit()
    background_tasks.add_task(
        broadcaster.broadcast, change_event("todos.reordered", None, request_id)
    )
    return {"ok": True}


@router.get("/{todo_id}")
def get_todo(todo_id: str, session: Session = Depends(get_session)) -> Todo:
    """Get a single todo by ID, including soft-deleted ones."""
    return _get_todo_or_404(session, todo_id)


@router.put("/{todo_id}")
def update_todo(
    todo_id: str,
    body: TodoUpdate,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> Todo:
    """Update an existing todo. Only provided fields are changed."""
    todo = _get_todo_or_404(session, todo_id)
    update_data = body.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        _check_category(session, update_data["category_id"])
    for key, value in update_data.items():
        setattr(todo, key, value)
    todo.updated_at = datetime.now(timezone.utc)
    session.add(todo)
    session.commit()
    session.refresh(todo)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("todo.updated", todo.id, request_id)
    )
    return todo


@router.patch("/{todo_id}/status")
def update_status(
    todo_id: str,
    status: TodoStatus,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> Todo:
    """Move a todo to another status."""
    todo = _get_todo_or_404(session, todo_id)
    todo.status = status
    todo.updated_at = datetime.now(timezone.utc)
    session.add(todo)
    session.commit()
    session.refresh(todo)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("todo.updated", todo.id, request_id)
    )
    return todo


@router.delete("/{todo_id}")
def delete_todo(
    todo_id: str,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> dict:
    """Soft-delete a todo. The row stays retrievable by ID."""
    todo = _get_todo_or_404(session, todo_id)
    todo.deleted = True
    todo.updated_at = datetime.now(timezone.utc)
    session.add(todo)
    session.commit()
    logger.info("Deleted todo %s", todo_id)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("todo.deleted", todo_id, request_id)
    )
    return {"ok": True}
