"""Tests for client-side grouping and ordering."""

from datetime import datetime, timedelta, timezone

from todo_client.grouping import (
    default_order,
    group_by_category,
    group_by_lifecycle,
    group_by_priority,
    is_overdue,
    my_day,
)
from todo_client.models import Category, Todo

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_todo(title, **fields):
    fields.setdefault("created_at", NOW)
    fields.setdefault("updated_at", NOW)
    return Todo(id=title, title=title, **fields)


def make_category(name, **fields):
    return Category(id=name.lower(), name=name, created_at=NOW, updated_at=NOW, **fields)


def titles(todos):
    return [t.title for t in todos]


class TestLifecycle:
    def test_archived_leaves_active_but_not_deleted(self):
        todo = make_todo("t", status="archived")
        groups = group_by_lifecycle([todo])
        assert groups == {"active": [], "archived": [todo], "deleted": []}

    def test_deleted_flag_wins_over_status(self):
        archived_and_deleted = make_todo("a", status="archived", deleted=True)
        groups = group_by_lifecycle([archived_and_deleted])
        assert titles(groups["deleted"]) == ["a"]
        assert groups["archived"] == []

    def test_every_live_status_is_active(self):
        todos = [make_todo(s, status=s) for s in ("todo", "doing", "done")]
        assert titles(group_by_lifecycle(todos)["active"]) == ["todo", "doing", "done"]


class TestPriority:
    def test_buckets_by_priority(self):
        todos = [make_todo(f"p{p}", priority=p) for p in range(4)]
        groups = group_by_priority(todos, now=NOW)
        assert {name: titles(ts) for name, ts in groups.items()} == {
            "urgent": ["p3"],
            "important": ["p2"],
            "normal": ["p1"],
            "low": ["p0"],
        }

    def test_overdue_first_then_due_date_then_undated(self):
        todos = [
            make_todo("undated", priority=3),
            make_todo("next-week", priority=3, due_at=NOW + timedelta(days=7)),
            make_todo("tomorrow", priority=3, due_at=NOW + timedelta(days=1)),
            make_todo("overdue", priority=3, due_at=NOW - timedelta(hours=1)),
        ]
        groups = group_by_priority(todos, now=NOW)
        assert titles(groups["urgent"]) == ["overdue", "tomorrow", "next-week", "undated"]

    def test_is_overdue(self):
        assert is_overdue(make_todo("x", due_at=NOW - timedelta(minutes=1)), NOW)
        assert not is_overdue(make_todo("x", due_at=NOW + timedelta(minutes=1)), NOW)
        assert not is_overdue(make_todo("x"), NOW)

    def test_naive_timestamps_treated_as_utc(self):
        todo = make_todo("x", due_at=datetime(2026, 5, 1, 11, 0))
        assert todo.due_at.tzinfo is timezone.utc
        assert is_overdue(todo, NOW)

    def test_my_day_only_live_doing(self):
        todos = [
            make_todo("doing", status="doing", priority=2),
            make_todo("todo", status="todo", priority=2),
            make_todo("gone", status="doing", priority=2, deleted=True),
        ]
        assert titles(my_day(todos, now=NOW)["important"]) == ["doing"]


class TestDefaultOrder:
    def test_matches_server_ordering(self):
        todos = [
            make_todo("low", priority=0),
            make_todo("undated", priority=3),
            make_todo("later", priority=3, due_at=NOW + timedelta(days=2)),
            make_todo("sooner", priority=3, due_at=NOW + timedelta(days=1)),
            make_todo("manual-2", priority=1, sort_order=2),
            make_todo("manual-1", priority=1, sort_order=1),
        ]
        assert titles(default_order(todos)) == [
            "sooner", "later", "undated", "manual-1", "manual-2", "low",
        ]


class TestCategory:
    def test_categories_ordered_and_uncategorized_last(self):
        work = make_category("Work", sort_order=1)
        home = make_category("Home", sort_order=0)
        alpha = make_category("Alpha", sort_order=1)
        todos = [
            make_todo("w", category_id="work"),
            make_todo("loose"),
            make_todo("orphan", category_id="deleted-category"),
        ]

        groups = group_by_category(todos, [work, home, alpha])

        assert [g.category.name if g.category else None for g in groups] == [
            "Home", "Alpha", "Work", None,
        ]
        assert titles(groups[2].todos) == ["w"]
        assert titles(groups[3].todos) == ["loose", "orphan"]

    def test_empty_categories_kept_empty_uncategorized_hidden(self):
        groups = group_by_category([], [make_category("Work")])
        assert len(groups) == 1
        assert groups[0].todos == []

    def test_todos_sorted_within_category(self):
        older = NOW - timedelta(days=1)
        todos = [
            make_todo("low", priority=0),
            make_todo("new-undated", priority=2),
            make_todo("old-undated", priority=2, created_at=older),
            make_todo("due", priority=2, due_at=NOW + timedelta(days=3)),
        ]
        (group,) = group_by_category(todos, [])
        assert titles(group.todos) == ["due", "old-undated", "new-undated", "low"]
