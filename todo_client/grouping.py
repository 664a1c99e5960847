"""Client-side grouping and ordering of todos for the list and board views."""

from datetime import datetime, timezone
from typing import Iterable, NamedTuple, Optional

from todo_client.models import Category, Todo, TodoStatus

PRIORITY_GROUPS = {3: "urgent", 2: "important", 1: "normal", 0: "low"}


class CategoryGroup(NamedTuple):
    category: Optional[Category]
    todos: list[Todo]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_overdue(todo: Todo, now: Optional[datetime] = None) -> bool:
    return todo.due_at is not None and todo.due_at < (now or _now())


def _due_key(todo: Todo) -> tuple:
    # Todos without a due date sort after every dated one.
    return (todo.due_at is None, todo.due_at or datetime.min.replace(tzinfo=timezone.utc))


def default_order(todos: Iterable[Todo]) -> list[Todo]:
    """Priority high to low, due date soonest first, then manual order, then age."""
    return sorted(
        todos,
        key=lambda t: (-t.priority, *_due_key(t), t.sort_order, t.created_at),
    )


def group_by_lifecycle(todos: Iterable[Todo]) -> dict[str, list[Todo]]:
    """Split into ``active``, ``archived`` and ``deleted``.

    The deleted flag wins over status: a deleted, archived todo is only in
    ``deleted``.
    """
    groups: dict[str, list[Todo]] = {"active": [], "archived": [], "deleted": []}
    for todo in todos:
        if todo.deleted:
            groups["deleted"].append(todo)
        elif todo.status is TodoStatus.archived:
            groups["archived"].append(todo)
        else:
            groups["active"].append(todo)
    return groups


def group_by_priority(
    todos: Iterable[Todo], now: Optional[datetime] = None
) -> dict[str, list[Todo]]:
    """Bucket by priority; overdue todos lead each bucket, then by due date."""
    now = now or _now()
    groups: dict[str, list[Todo]] = {name: [] for name in PRIORITY_GROUPS.values()}
    for todo in todos:
        name = PRIORITY_GROUPS.get(todo.priority)
        if name is not None:
            groups[name].append(todo)
    for name, bucket in groups.items():
        groups[name] = sorted(bucket, key=lambda t: (not is_overdue(t, now), *_due_key(t)))
    return groups


def group_by_category(
    todos: Iterable[Todo], categories: Iterable[Category]
) -> list[CategoryGroup]:
    """Group todos under their category.

    Categories come in ``sort_order`` then name order and are listed even
    when empty. Todos whose category is missing or unknown go to a trailing
    uncategorized group, shown only when it has members.
    """
    ordered = sorted(categories, key=lambda c: (c.sort_order, c.name.lower()))
    buckets: dict[str, list[Todo]] = {c.id: [] for c in ordered}
    uncategorized: list[Todo] = []
    for todo in todos:
        buckets.get(todo.category_id, uncategorized).append(todo)

    def todo_key(t: Todo) -> tuple:
        return (-t.priority, *_due_key(t), t.created_at)

    groups = [CategoryGroup(c, sorted(buckets[c.id], key=todo_key)) for c in ordered]
    if uncategorized:
        groups.append(CategoryGroup(None, sorted(uncategorized, key=todo_key)))
    return groups


def my_day(todos: Iterable[Todo], now: Optional[datetime] = None) -> dict[str, list[Todo]]:
    """Live todos in progress, grouped by priority."""
    doing = [t for t in todos if not t.deleted and t.status is TodoStatus.doing]
    return group_by_priority(doing, now)
