"""Tests for category CRUD endpoints and reference clearing on delete."""

import json

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from todo_api.database import DEFAULT_CATEGORIES, seed_default_categories
from todo_api.models import Category


class RecordingConnection:
    def __init__(self):
        self.messages = []

    async def send_text(self, data: str) -> None:
        self.messages.append(json.loads(data))


def _category(client: TestClient, **fields) -> dict:
    response = client.post("/api/categories", json={"name": "Work", **fields})
    assert response.status_code == 201
    return response.json()


def test_create_category_defaults(client: TestClient):
    data = _category(client, name="Errands")
    assert data["name"] == "Errands"
    assert data["color"] == "#6B7280"
    assert data["description"] is None
    assert data["sort_order"] == 0
    assert data["deleted"] is False


def test_blank_name_rejected(client: TestClient):
    response = client.post("/api/categories", json={"name": "  "})
    assert response.status_code == 422


def test_list_orders_by_sort_order_then_name(client: TestClient):
    _category(client, name="Zeta")
    _category(client, name="Alpha")
    _category(client, name="First", sort_order=-1)

    names = [c["name"] for c in client.get("/api/categories").json()]
    assert names == ["First", "Alpha", "Zeta"]


def test_get_missing_category_returns_404(client: TestClient):
    response = client.get("/api/categories/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Category not found"


def test_update_category_partial(client: TestClient):
    created = _category(client, description="office")
    response = client.put(
        f"/api/categories/{created['id']}", json={"color": "#3B82F6"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["color"] == "#3B82F6"
    assert data["description"] == "office"
    assert data["name"] == "Work"


def test_assign_todo_to_category(client: TestClient):
    category = _category(client)
    todo = client.post(
        "/api/todos", json={"title": "Report", "category_id": category["id"]}
    ).json()
    assert todo["category_id"] == category["id"]

    listed = client.get("/api/todos", params={"category_id": category["id"]}).json()
    assert [t["id"] for t in listed] == [todo["id"]]


def test_delete_category_clears_todo_references(client: TestClient):
    category = _category(client)
    live = client.post(
        "/api/todos", json={"title": "live", "category_id": category["id"]}
    ).json()
    gone = client.post(
        "/api/todos", json={"title": "gone", "category_id": category["id"]}
    ).json()
    client.delete(f"/api/todos/{gone['id']}")

    response = client.delete(f"/api/categories/{category['id']}")
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    assert client.get(f"/api/todos/{live['id']}").json()["category_id"] is None
    assert client.get(f"/api/todos/{gone['id']}").json()["category_id"] is None
    assert client.get("/api/categories").json() == []
    assert client.get(f"/api/categories/{category['id']}").json()["deleted"] is True


def test_soft_delete_via_update_clears_todo_references(client: TestClient):
    category = _category(client)
    todo = client.post(
        "/api/todos", json={"title": "Report", "category_id": category["id"]}
    ).json()

    response = client.put(f"/api/categories/{category['id']}", json={"deleted": True})
    assert response.status_code == 200
    assert response.json()["deleted"] is True

    assert client.get(f"/api/todos/{todo['id']}").json()["category_id"] is None
    assert client.get("/api/categories").json() == []


@pytest.mark.parametrize("field", ["name", "sort_order", "deleted"])
def test_null_for_required_category_field_rejected(client: TestClient, field: str):
    category = _category(client)
    response = client.put(f"/api/categories/{category['id']}", json={field: None})
    assert response.status_code == 422
    assert client.get(f"/api/categories/{category['id']}").json()["name"] == "Work"


def test_null_color_allowed(client: TestClient):
    category = _category(client)
    response = client.put(f"/api/categories/{category['id']}", json={"color": None})
    assert response.status_code == 200
    assert response.json()["color"] is None


def test_deleted_category_cannot_be_assigned(client: TestClient):
    category = _category(client)
    client.delete(f"/api/categories/{category['id']}")
    todo = client.post("/api/todos", json={"title": "x"}).json()

    response = client.put(
        f"/api/todos/{todo['id']}", json={"category_id": category["id"]}
    )
    assert response.status_code == 400


def test_each_category_mutation_broadcasts_once(client: TestClient, broadcaster):
    listener = RecordingConnection()
    broadcaster.register(listener)

    category = _category(client)
    client.put(f"/api/categories/{category['id']}", json={"name": "Office"})
    client.delete(f"/api/categories/{category['id']}")
    client.get("/api/categories")

    assert [m["type"] for m in listener.messages] == [
        "category.created",
        "category.updated",
        "category.deleted",
    ]
    assert {m["id"] for m in listener.messages} == {category["id"]}


def test_seed_default_categories_only_when_empty(engine):
    assert seed_default_categories(engine) == len(DEFAULT_CATEGORIES)
    assert seed_default_categories(engine) == 0

    with Session(engine) as session:
        names = {c.name for c in session.exec(select(Category)).all()}
    assert names == {name for name, _, _ in DEFAULT_CATEGORIES}
