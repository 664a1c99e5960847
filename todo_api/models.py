"""Todo and category models for the todo API."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import field_validator
from sqlmodel import Field, SQLModel

DEFAULT_CATEGORY_COLOR = "#6B7280"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _reject_null(value):
    if value is None:
        raise ValueError("must not be null")
    return value


def _require_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class TodoStatus(str, Enum):
    todo = "todo"
    doing = "doing"
    done = "done"
    archived = "archived"


class Category(SQLModel, table=True):
    """Category database table."""
    __tablename__ = "categories"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(max_length=100)
    color: Optional[str] = Field(default=DEFAULT_CATEGORY_COLOR, max_length=32)
    description: Optional[str] = Field(default=None)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted: bool = Field(default=False)


class Todo(SQLModel, table=True):
    """Todo database table. Rows are soft-deleted, never removed."""
    __tablename__ = "todos"

    id: str = Field(default_factory=_new_id, primary_key=True)
    title: str = Field(max_length=200)
    note: Optional[str] = Field(default=None)
    status: TodoStatus = Field(default=TodoStatus.todo)
    priority: int = Field(default=1, ge=0, le=3)
    due_at: Optional[datetime] = Field(default=None)
    tags: Optional[str] = Field(default=None)
    category_id: Optional[str] = Field(default=None, foreign_key="categories.id")
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted: bool = Field(default=False)


class TodoCreate(SQLModel):
    """Schema for creating a todo. Title is required, rest have defaults."""
    title: str = Field(max_length=200)
    note: Optional[str] = None
    priority: int = Field(default=1, ge=0, le=3)
    due_at: Optional[datetime] = None
    tags: Optional[str] = None
    category_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v)


class TodoUpdate(SQLModel):
    """Schema for updating a todo. All fields optional; NOT NULL columns reject null."""
    title: Optional[str] = Field(default=None, max_length=200)
    note: Optional[str] = None
    status: Optional[TodoStatus] = None
    priority: Optional[int] = Field(default=None, ge=0, le=3)
    due_at: Optional[datetime] = None
    tags: Optional[str] = None
    category_id: Optional[str] = None
    sort_order: Optional[int] = None
    deleted: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v)

    @field_validator("title", "status", "priority", "sort_order", "deleted")
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class ReorderItem(SQLModel):
    id: str
    sort_order: int


class CategoryCreate(SQLModel):
    """Schema for creating a category. Name is required."""
    name: str = Field(max_length=100)
    color: Optional[str] = Field(default=DEFAULT_CATEGORY_COLOR, max_length=32)
    description: Optional[str] = None
    sort_order: int = 0

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v)


class CategoryUpdate(SQLModel):
    """Schema for updating a category. All fields optional; NOT NULL columns reject null."""
    name: Optional[str] = Field(default=None, max_length=100)
    color: Optional[str] = Field(default=None, max_length=32)
    description: Optional[str] = None
    sort_order: Optional[int] = None
    deleted: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v)

    @field_validator("name", "sort_order", "deleted")
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)
