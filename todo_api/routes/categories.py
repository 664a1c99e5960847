"""CRUD endpoints for categories."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from sqlmodel import Session, select

from todo_api.broadcaster import ChangeBroadcaster, change_event, get_broadcaster
from todo_api.database import get_session
from todo_api.models import Category, CategoryCreate, CategoryUpdate, Todo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["categories"])


def _get_category_or_404(session: Session, category_id: str) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _detach_todos(session: Session, category_id: str, now: datetime) -> int:
    """Clear every todo reference to *category_id*, soft-deleted todos included."""
    referencing = session.exec(select(Todo).where(Todo.category_id == category_id)).all()
    for todo in referencing:
        todo.category_id = None
        todo.updated_at = now
        session.add(todo)
    return len(referencing)


@router.get("")
def list_categories(session: Session = Depends(get_session)) -> list[Category]:
    """List live categories in display order."""
    statement = (
        select(Category)
        .where(Category.deleted == False)  # noqa: E712
        .order_by(Category.sort_order.asc(), Category.name.asc())
    )
    return list(session.exec(statement).all())


@router.post("", status_code=201)
def create_category(
    body: CategoryCreate,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> Category:
    """Create a new category."""
    category = Category.model_validate(body)
    session.add(category)
    session.commit()
    session.refresh(category)
    logger.info("Created category %s (%s)", category.id, category.name)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("category.created", category.id, request_id)
    )
    return category


@router.get("/{category_id}")
def get_category(category_id: str, session: Session = Depends(get_session)) -> Category:
    """Get a single category by ID."""
    return _get_category_or_404(session, category_id)


@router.put("/{category_id}")
def update_category(
    category_id: str,
    body: CategoryUpdate,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> Category:
    """Update an existing category. Only provided fields are changed."""
    category = _get_category_or_404(session, category_id)
    now = datetime.now(timezone.utc)
    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("deleted"):
        detached = _detach_todos(session, category_id, now)
        logger.info("Deleted category %s, detached %d todos", category_id, detached)
    for key, value in update_data.items():
        setattr(category, key, value)
    category.updated_at = now
    session.add(category)
    session.commit()
    session.refresh(category)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("category.updated", category.id, request_id)
    )
    return category


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    background_tasks: BackgroundTasks,
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    session: Session = Depends(get_session),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> dict:
    """Soft-delete a category after detaching every todo that references it."""
    category = _get_category_or_404(session, category_id)
    now = datetime.now(timezone.utc)

    detached = _detach_todos(session, category_id, now)
    category.deleted = True
    category.updated_at = now
    session.add(category)
    session.commit()
    logger.info("Deleted category %s, detached %d todos", category_id, detached)
    background_tasks.add_task(
        broadcaster.broadcast, change_event("category.deleted", category_id, request_id)
    )
    return {"ok": True}
