"""Reconnecting realtime client.

State machine::

    CONNECTING -> OPEN -> CLOSED -> CONNECTING -> ...
    any state  -> STOPPED  (terminal)

The client never interprets payloads; every inbound message is handed to
the application callback as-is. Connect failures and abrupt closes both
drive the same capped exponential backoff. Timers and connections are
injected so the backoff can be driven without real sockets or real time.

Callbacks all run on one cooperative event loop, so no locking is done.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

UPDATES_PATH = "/ws/updates"
HEARTBEAT = "ping"
RETRY_FLOOR_MS = 1000
RETRY_CEILING_MS = 10_000


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    STOPPED = "stopped"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class RealtimeConnection(Protocol):
    def send(self, data: str) -> None: ...

    def close(self) -> None: ...


# factory(url, *, on_open, on_message, on_close, on_error) -> RealtimeConnection
#
# Callbacks must fire after the factory has returned, never from inside it.
ConnectionFactory = Callable[..., RealtimeConnection]


class AsyncioTimer:
    """Timer backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


def updates_url(base_url: str) -> str:
    """Turn an HTTP origin into the realtime endpoint URL.

    ``https://host`` becomes ``wss://host/ws/updates``; anything else gets
    ``ws://``.
    """
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    return urlunsplit((scheme, parts.netloc, UPDATES_PATH, "", ""))


def next_retry_delay(current_ms: int) -> int:
    """Double *current_ms*, capped at the ceiling."""
    return min(current_ms * 2, RETRY_CEILING_MS)


class RealtimeClient:
    """Keeps one push connection open and reconnects with backoff.

    Parameters
    ----------
    base_url : str
        HTTP origin of the API server.
    on_message : callable
        Invoked with the raw payload of every inbound message. Exceptions
        it raises are logged and leave the connection open.
    connection_factory : callable, optional
        Opens a connection; defaults to :class:`WebSocketsConnection`,
        which needs a running asyncio loop.
    timer : Timer, optional
        Schedules reconnects; defaults to :class:`AsyncioTimer`.
    on_state_change : callable, optional
        Invoked with the new :class:`ConnectionState` on every transition.
    """

    def __init__(
        self,
        base_url: str,
        on_message: Callable[[Any], None],
        *,
        connection_factory: Optional[ConnectionFactory] = None,
        timer: Optional[Timer] = None,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
    ) -> None:
        if connection_factory is None:
            from todo_client.connection import WebSocketsConnection

            connection_factory = WebSocketsConnection

        self.url = updates_url(base_url)
        self._on_message = on_message
        self._factory = connection_factory
        self._timer = timer or AsyncioTimer()
        self._on_state_change = on_state_change

        self._state = ConnectionState.CONNECTING
        self._retry_ms = RETRY_FLOOR_MS
        self._connection: Optional[RealtimeConnection] = None
        self._pending: Optional[TimerHandle] = None
        self._attempt = 0

        self._connect()

    # -- public API -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_delay_ms(self) -> int:
        """Delay that the next reconnect will wait."""
        return self._retry_ms

    @property
    def attempts(self) -> int:
        """Number of connection attempts started so far."""
        return self._attempt

    def stop(self) -> None:
        """Stop for good: cancel any pending reconnect and close the socket.

        Safe from any state; later calls do nothing.
        """
        if self._state is ConnectionState.STOPPED:
            return
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        connection, self._connection = self._connection, None
        self._set_state(ConnectionState.STOPPED)
        if connection is not None:
            try:
                connection.close()
            except Exception:
                logger.debug("Error closing realtime connection", exc_info=True)

    # -- transitions ----------------------------------------------------------

    def _connect(self) -> None:
        self._pending = None
        if self._state is ConnectionState.STOPPED:
            return

        self._attempt += 1
        attempt = self._attempt
        self._set_state(ConnectionState.CONNECTING)
        logger.debug("Connecting to %s (attempt %d)", self.url, attempt)
        try:
            self._connection = self._factory(
                self.url,
                on_open=lambda: self._handle_open(attempt),
                on_message=lambda data: self._handle_message(attempt, data),
                on_close=lambda *_: self._handle_drop(attempt),
                on_error=lambda *_: self._handle_drop(attempt),
            )
        except Exception as exc:
            logger.warning("Realtime connect to %s failed: %s", self.url, exc)
            self._handle_drop(attempt)

    def _handle_open(self, attempt: int) -> None:
        if not self._is_current(attempt) or self._state is not ConnectionState.CONNECTING:
            return
        self._retry_ms = RETRY_FLOOR_MS
        self._set_state(ConnectionState.OPEN)
        logger.info("Realtime connection open: %s", self.url)
        try:
            self._connection.send(HEARTBEAT)
        except Exception as exc:
            logger.warning("Realtime heartbeat failed: %s", exc)
            self._handle_drop(attempt)

    def _handle_message(self, attempt: int, data: Any) -> None:
        if not self._is_current(attempt) or self._state is not ConnectionState.OPEN:
            return
        try:
            self._on_message(data)
        except Exception:
            logger.exception("Realtime message handler failed")

    def _handle_drop(self, attempt: int) -> None:
        # A failed socket can report both an error and a close; only the
        # first one schedules a reconnect.
        if not self._is_current(attempt) or self._state in (
            ConnectionState.CLOSED,
            ConnectionState.STOPPED,
        ):
            return
        self._connection = None
        delay_ms = self._retry_ms
        self._retry_ms = next_retry_delay(delay_ms)
        self._set_state(ConnectionState.CLOSED)
        logger.info("Realtime connection lost; reconnecting in %d ms", delay_ms)
        self._pending = self._timer.call_later(delay_ms / 1000, self._connect)

    # -- private helpers ------------------------------------------------------

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)
