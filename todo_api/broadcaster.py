"""Change broadcaster for realtime clients.

Keeps the set of open WebSocket connections and fans out a small
"something changed" notification after every successful mutation. Clients
treat a notification as a hint to re-fetch over REST, so delivery is
best-effort: no ordering, no replay, no acknowledgement.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Optional, Protocol, Union

from fastapi import Request

logger = logging.getLogger(__name__)

HEARTBEAT = "ping"


class Connection(Protocol):
    async def send_text(self, data: str) -> None: ...


def change_event(
    event_type: str,
    entity_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> dict:
    """Build the notification payload for one mutation."""
    return {"type": event_type, "id": entity_id, "request_id": request_id}


class ChangeBroadcaster:
    """Registry of live connections with best-effort fan-out.

    One instance per server process, owned by the application. The live set
    is guarded by a lock because connects and disconnects can race with a
    broadcast snapshot.
    """

    def __init__(self) -> None:
        self._connections: set[Connection] = set()
        self._lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def register(self, connection: Connection) -> None:
        """Add a connection to the live set."""
        with self._lock:
            self._connections.add(connection)
        logger.debug("Realtime connection registered (%d live)", self.connection_count)

    def unregister(self, connection: Connection) -> None:
        """Remove a connection. Removing an absent connection is a no-op."""
        with self._lock:
            self._connections.discard(connection)
        logger.debug("Realtime connection unregistered (%d live)", self.connection_count)

    async def broadcast(self, event: Union[dict[str, Any], str]) -> int:
        """Send *event* to every live connection.

        Never raises. A connection that fails to accept the message is
        logged and unregistered. Returns the number of successful deliveries.
        """
        with self._lock:
            targets = list(self._connections)
        if not targets:
            return 0

        message = event if isinstance(event, str) else json.dumps(event)
        results = await asyncio.gather(
            *(self._deliver(connection, message) for connection in targets)
        )
        delivered = sum(results)
        logger.debug("Broadcast delivered to %d/%d connections", delivered, len(targets))
        return delivered

    async def _deliver(self, connection: Connection, message: str) -> bool:
        try:
            await connection.send_text(message)
            return True
        except Exception as exc:
            logger.warning("Dropping realtime connection after failed send: %s", exc)
            self.unregister(connection)
            return False


def get_broadcaster(request: Request) -> ChangeBroadcaster:
    """Return the application's broadcaster for FastAPI dependency injection."""
    return request.app.state.broadcaster
