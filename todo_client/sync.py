"""Notify-then-refetch synchronisation of the todo list.

Realtime notifications only say that something changed; the list is always
re-pulled over REST. Mutations made through :class:`LiveTodoList` carry a
client-generated request id, and the notification that echoes one of them
back is dropped instead of triggering a redundant refetch that could
clobber an edit still being made locally.
"""

import asyncio
import json
import logging
import threading
import time
import uuid
from collections import OrderedDict
from typing import Any, Callable, Optional

import httpx

from todo_client.api_client import TodoApiClient, TodoApiError
from todo_client.models import Todo, TodoStatus

logger = logging.getLogger(__name__)

DEFAULT_ECHO_MAX_AGE = 60.0
DEFAULT_MAX_PENDING = 256


def parse_notification(message: Any) -> dict:
    """Best-effort decode of a notification; unknown shapes yield ``{}``."""
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    if not isinstance(message, str):
        return {}
    try:
        payload = json.loads(message)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class MutationTracker:
    """Request ids of this client's own mutations awaiting their echo.

    An echo can be lost, for example while the realtime connection is
    down, so ids expire after *max_age* seconds and at most *max_pending*
    are kept (oldest dropped first).
    """

    def __init__(
        self,
        max_age: float = DEFAULT_ECHO_MAX_AGE,
        max_pending: int = DEFAULT_MAX_PENDING,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._pending: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()
        self._max_age = max_age
        self._max_pending = max_pending
        self._clock = clock

    def new_request_id(self) -> str:
        """Generate and remember a request id for an outgoing mutation."""
        request_id = str(uuid.uuid4())
        with self._lock:
            self._prune()
            self._pending[request_id] = self._clock()
            while len(self._pending) > self._max_pending:
                dropped, _ = self._pending.popitem(last=False)
                logger.debug("Dropping unechoed request id %s", dropped)
        return request_id

    def forget(self, request_id: str) -> None:
        with self._lock:
            self._pending.pop(request_id, None)

    def is_own_echo(self, notification: dict) -> bool:
        """Return True, once, for a notification caused by our own mutation."""
        request_id = notification.get("request_id")
        if not request_id:
            return False
        with self._lock:
            self._prune()
            return self._pending.pop(request_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            self._prune()
            return len(self._pending)

    def _prune(self) -> None:
        # Insertion order is age order.
        cutoff = self._clock() - self._max_age
        while self._pending:
            request_id, started = next(iter(self._pending.items()))
            if started > cutoff:
                break
            del self._pending[request_id]


class LiveTodoList:
    """Current todo list kept fresh from realtime notifications.

    On an asyncio :class:`~todo_client.realtime.RealtimeClient` pass
    :meth:`schedule_refresh` as ``on_message``; it re-pulls the list on a
    worker thread so the loop keeps serving the socket. :meth:`handle_message`
    is the blocking equivalent for callers that drive messages themselves.
    """

    def __init__(
        self,
        api: TodoApiClient,
        on_change: Optional[Callable[[list[Todo]], None]] = None,
        include_deleted: bool = True,
        tracker: Optional[MutationTracker] = None,
    ) -> None:
        self._api = api
        self._on_change = on_change
        self._include_deleted = include_deleted
        self.tracker = tracker or MutationTracker()
        self.todos: list[Todo] = []
        self.refetch_count = 0
        self._refreshes: set[asyncio.Task] = set()

    def refresh(self) -> list[Todo]:
        """Re-pull the full list and notify the listener."""
        return self._apply(self._api.list_todos(include_deleted=self._include_deleted))

    async def refresh_async(self) -> list[Todo]:
        """Like :meth:`refresh`, with the HTTP call run off the event loop."""
        todos = await asyncio.to_thread(
            self._api.list_todos, include_deleted=self._include_deleted
        )
        return self._apply(todos)

    def handle_message(self, message: Any) -> bool:
        """React to one realtime message. Returns True when it caused a refetch."""
        if self._is_own_echo(message):
            return False
        self.refresh()
        return True

    def schedule_refresh(self, message: Any) -> Optional[asyncio.Task]:
        """React to one realtime message without blocking the running loop.

        Returns the refetch task, or None for an echo of our own mutation.
        A failed refetch is logged and the list keeps its previous contents.
        """
        if self._is_own_echo(message):
            return None
        task = asyncio.get_running_loop().create_task(self._refresh_logged())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)
        return task

    # -- tagged mutations -----------------------------------------------------

    def create(self, data: dict) -> Todo:
        return self._mutate(lambda rid: self._api.create_todo(data, request_id=rid))

    def update(self, todo_id: str, data: dict) -> Todo:
        return self._mutate(lambda rid: self._api.update_todo(todo_id, data, request_id=rid))

    def set_status(self, todo_id: str, status: TodoStatus) -> Todo:
        return self._mutate(lambda rid: self._api.update_status(todo_id, status, request_id=rid))

    def delete(self, todo_id: str) -> None:
        self._mutate(lambda rid: self._api.delete_todo(todo_id, request_id=rid))

    def reorder(self, items: list[dict]) -> None:
        self._mutate(lambda rid: self._api.reorder(items, request_id=rid))

    def _mutate(self, call: Callable[[str], Any]) -> Any:
        request_id = self.tracker.new_request_id()
        try:
            result = call(request_id)
        except Exception:
            # A failed mutation broadcasts nothing, so no echo will arrive.
            self.tracker.forget(request_id)
            raise
        self.refresh()
        return result

    # -- private helpers ------------------------------------------------------

    def _is_own_echo(self, message: Any) -> bool:
        notification = parse_notification(message)
        if self.tracker.is_own_echo(notification):
            logger.debug("Skipping echo of own mutation %s", notification.get("request_id"))
            return True
        return False

    def _apply(self, todos: list[Todo]) -> list[Todo]:
        self.todos = todos
        self.refetch_count += 1
        if self._on_change is not None:
            self._on_change(self.todos)
        return self.todos

    async def _refresh_logged(self) -> None:
        try:
            await self.refresh_async()
        except (httpx.HTTPError, TodoApiError) as exc:
            logger.warning("Todo list refetch failed: %s", exc)
