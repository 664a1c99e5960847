"""HTTP client for the todo REST API."""

import logging
from typing import Any, Optional

import httpx

from todo_client.models import Category, Todo, TodoStatus

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class TodoApiError(Exception):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class TodoApiClient:
    """Thin synchronous wrapper over the REST surface.

    Parameters
    ----------
    base_url : str
        Origin of the server, e.g. ``http://localhost:8000``.
    client : httpx.Client, optional
        Pre-built client to use instead of creating one. Any
        ``httpx.Client`` works, including FastAPI's ``TestClient``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self.base_url = str(self._client.base_url) or base_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "TodoApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- todos ----------------------------------------------------------------

    def list_todos(
        self,
        status: Optional[TodoStatus] = None,
        category_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> list[Todo]:
        params: dict[str, Any] = {}
        if status is not None:
            params["status"] = TodoStatus(status).value
        if category_id is not None:
            params["category_id"] = category_id
        if include_deleted:
            params["include_deleted"] = "true"
        data = self._request("GET", "/api/todos", params=params)
        return [Todo.model_validate(item) for item in data]

    def create_todo(self, data: dict, request_id: Optional[str] = None) -> Todo:
        return Todo.model_validate(
            self._request("POST", "/api/todos", json=data, request_id=request_id)
        )

    def get_todo(self, todo_id: str) -> Todo:
        return Todo.model_validate(self._request("GET", f"/api/todos/{todo_id}"))

    def update_todo(self, todo_id: str, data: dict, request_id: Optional[str] = None) -> Todo:
        return Todo.model_validate(
            self._request("PUT", f"/api/todos/{todo_id}", json=data, request_id=request_id)
        )

    def update_status(
        self, todo_id: str, status: TodoStatus, request_id: Optional[str] = None
    ) -> Todo:
        return Todo.model_validate(
            self._request(
                "PATCH",
                f"/api/todos/{todo_id}/status",
                params={"status": TodoStatus(status).value},
                request_id=request_id,
            )
        )

    def delete_todo(self, todo_id: str, request_id: Optional[str] = None) -> None:
        self._request("DELETE", f"/api/todos/{todo_id}", request_id=request_id)

    def reorder(self, items: list[dict], request_id: Optional[str] = None) -> None:
        """Send ``[{"id": ..., "sort_order": ...}, ...]`` in one call."""
        self._request("POST", "/api/todos/reorder", json=items, request_id=request_id)

    # -- categories -----------------------------------------------------------

    def list_categories(self) -> list[Category]:
        return [
            Category.model_validate(item)
            for item in self._request("GET", "/api/categories")
        ]

    def create_category(self, data: dict, request_id: Optional[str] = None) -> Category:
        return Category.model_validate(
            self._request("POST", "/api/categories", json=data, request_id=request_id)
        )

    def get_category(self, category_id: str) -> Category:
        return Category.model_validate(self._request("GET", f"/api/categories/{category_id}"))

    def update_category(
        self, category_id: str, data: dict, request_id: Optional[str] = None
    ) -> Category:
        return Category.model_validate(
            self._request(
                "PUT", f"/api/categories/{category_id}", json=data, request_id=request_id
            )
        )

    def delete_category(self, category_id: str, request_id: Optional[str] = None) -> None:
        self._request("DELETE", f"/api/categories/{category_id}", request_id=request_id)

    # -- private helpers ------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        request_id: Optional[str] = None,
    ) -> Any:
        headers = {REQUEST_ID_HEADER: request_id} if request_id else None
        response = self._client.request(
            method, path, params=params, json=json, headers=headers
        )
        if not response.is_success:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            logger.warning("%s %s failed with %d: %s", method, path, response.status_code, detail)
            raise TodoApiError(response.status_code, detail)
        return response.json()
