"""Default realtime connection built on the ``websockets`` asyncio client."""

import asyncio
import logging
from typing import Any, Callable, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)


class WebSocketsConnection:
    """One WebSocket connection reporting open/message/close/error events.

    The socket is driven by a task on the running loop, so construction
    returns immediately and every callback fires later from that task.
    Exactly one of *on_close* or *on_error* is reported per connection,
    and none once :meth:`close` has been called.
    """

    def __init__(
        self,
        url: str,
        *,
        on_open: Callable[[], None],
        on_message: Callable[[Any], None],
        on_close: Callable[[], None],
        on_error: Callable[[BaseException], None],
        open_timeout: float = 10.0,
    ) -> None:
        self.url = url
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close
        self._on_error = on_error
        self._open_timeout = open_timeout
        self._ws: Optional[ClientConnection] = None
        self._closed = False
        self._sends: set[asyncio.Task] = set()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, data: str) -> None:
        """Queue *data* for sending; failures surface as a dropped connection."""
        if self._ws is None or self._closed:
            raise ConnectionError("WebSocket is not open")
        task = asyncio.get_running_loop().create_task(self._send(data))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    def close(self) -> None:
        self._closed = True
        self._task.cancel()

    async def _send(self, data: str) -> None:
        try:
            await self._ws.send(data)
        except ConnectionClosed as exc:
            logger.debug("Send on closed WebSocket %s: %s", self.url, exc)

    async def _run(self) -> None:
        try:
            async with connect(self.url, open_timeout=self._open_timeout) as ws:
                self._ws = ws
                if self._closed:
                    return
                self._on_open()
                async for message in ws:
                    if self._closed:
                        return
                    self._on_message(message)
        except asyncio.CancelledError:
            raise
        except (OSError, TimeoutError, WebSocketException) as exc:
            logger.debug("WebSocket %s failed: %s", self.url, exc)
            if not self._closed:
                self._on_error(exc)
            return
        except Exception as exc:
            logger.exception("WebSocket %s handler failed", self.url)
            if not self._closed:
                self._on_error(exc)
            return
        finally:
            self._ws = None

        if not self._closed:
            self._on_close()
