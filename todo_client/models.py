"""Client-side views of the todo API payloads."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class TodoStatus(str, Enum):
    todo = "todo"
    doing = "doing"
    done = "done"
    archived = "archived"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive timestamps; they are stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Todo(BaseModel):
    id: str
    title: str
    note: Optional[str] = None
    status: TodoStatus = TodoStatus.todo
    priority: int = 1
    due_at: Optional[datetime] = None
    tags: Optional[str] = None
    category_id: Optional[str] = None
    sort_order: int = 0
    created_at: datetime
    updated_at: datetime
    deleted: bool = False

    @field_validator("due_at", "created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class Category(BaseModel):
    id: str
    name: str
    color: Optional[str] = None
    description: Optional[str] = None
    sort_order: int = 0
    created_at: datetime
    updated_at: datetime
    deleted: bool = False
