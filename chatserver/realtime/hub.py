"""
Connection Hub
==============

The hub owns the set of live connections. A single worker task mutates the
set; every other task talks to it by posting register, unregister and
broadcast events to its inbox. Events are handled one at a time in the order
they were posted.

Each connection owns a bounded outbound queue drained by its own writer
task, so the hub never awaits a socket. A peer whose queue is full, or whose
socket write fails, is closed and removed from the live set.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from bson import ObjectId
from fastapi import WebSocket, status

logger = logging.getLogger("chatserver.realtime.hub")

REGISTER = "register"
UNREGISTER = "unregister"
BROADCAST = "broadcast"


class Connection:
    """
    A single live socket.

    Attributes:
        id: Opaque connection identifier used in logs
        websocket: The accepted socket
        user_id: Authenticated user bound at upgrade, or None
        connected_at: Upgrade time (UTC)
    """

    def __init__(
        self,
        websocket: WebSocket,
        user_id: Optional[ObjectId] = None,
        queue_size: int = 64,
    ):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.connected_at = datetime.now(timezone.utc)

        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._on_failure: Optional[Callable[["Connection"], Awaitable[None]]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, on_failure: Optional[Callable[["Connection"], Awaitable[None]]] = None) -> None:
        """
        Start the writer task.

        Args:
            on_failure: Awaited once if a socket write fails or the queue
                overflows on a direct send (normally ``Hub.unregister``)
        """
        self._on_failure = on_failure
        self._writer = asyncio.create_task(self._write_loop(), name=f"ws-writer-{self.id}")

    def enqueue(self, text: str) -> bool:
        """
        Queue a text frame without waiting.

        Returns:
            False if the connection is closed or its queue is full
        """
        if self._closed:
            return False
        try:
            self._outbound.put_nowait(text)
        except asyncio.QueueFull:
            return False
        return True

    async def send_json(self, payload: Dict[str, Any]) -> bool:
        """
        Queue a JSON response for this socket only.

        An overflowing queue is treated like a failed write.
        """
        if self.enqueue(json.dumps(payload)):
            return True
        if not self._closed:
            logger.warning(
                "Send queue full, dropping connection",
                extra={"connection_id": self.id},
            )
            await self._fail()
        return False

    async def drain(self) -> None:
        """Wait until every queued frame has been written."""
        await self._outbound.join()

    async def _write_loop(self) -> None:
        while True:
            text = await self._outbound.get()
            failed = False
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                logger.warning(
                    f"Error writing message: {str(e)}",
                    extra={"connection_id": self.id},
                )
                failed = True
            finally:
                self._outbound.task_done()

            if failed:
                await self._fail()
                return

    async def _fail(self) -> None:
        if self._on_failure is not None:
            callback, self._on_failure = self._on_failure, None
            await callback(self)

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        """Stop the writer and release the socket. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        writer = self._writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

        # Release anyone waiting in drain().
        while not self._outbound.empty():
            self._outbound.get_nowait()
            self._outbound.task_done()

        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"Socket already closed: {str(e)}", extra={"connection_id": self.id})


class Hub:
    """
    Single owner of the live-connection set.

    ``register``, ``unregister`` and ``broadcast`` only post events; the
    worker started by ``start`` applies them.
    """

    def __init__(self):
        self._connections: Set[Connection] = set()
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="ws-hub")
        logger.info("Hub started")

    async def stop(self) -> None:
        """
        Stop the worker and close every live connection.

        Used during application shutdown.
        """
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        connections = list(self._connections)
        self._connections.clear()
        for connection in connections:
            await connection.close(code=status.WS_1001_GOING_AWAY)

        logger.info("Hub stopped", extra={"closed_connections": len(connections)})

    async def wait_idle(self) -> None:
        """Wait until every posted event has been handled."""
        await self._inbox.join()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def register(self, connection: Connection) -> None:
        await self._inbox.put((REGISTER, connection))

    async def unregister(self, connection: Connection) -> None:
        await self._inbox.put((UNREGISTER, connection))

    async def broadcast(self, frame: str) -> None:
        await self._inbox.put((BROADCAST, frame))

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            event: Tuple[str, Any] = await self._inbox.get()
            kind, payload = event
            try:
                if kind == REGISTER:
                    self._add(payload)
                elif kind == UNREGISTER:
                    await self._remove(payload)
                elif kind == BROADCAST:
                    await self._fan_out(payload)
            except Exception as e:
                logger.error(f"Hub failed to handle {kind}: {str(e)}", exc_info=True)
            finally:
                self._inbox.task_done()

    def _add(self, connection: Connection) -> None:
        if connection.closed:
            return
        self._connections.add(connection)
        logger.info(
            "Client connected",
            extra={
                "connection_id": connection.id,
                "user_id": str(connection.user_id) if connection.user_id else None,
                "total_connections": len(self._connections),
            },
        )

    async def _remove(self, connection: Connection) -> None:
        if connection not in self._connections:
            return
        self._connections.discard(connection)
        await connection.close()
        logger.info(
            "Client disconnected",
            extra={
                "connection_id": connection.id,
                "total_connections": len(self._connections),
            },
        )

    async def _fan_out(self, frame: str) -> None:
        failed = [
            connection
            for connection in list(self._connections)
            if not connection.enqueue(frame)
        ]

        for connection in failed:
            logger.warning(
                "Error writing message, dropping connection",
                extra={"connection_id": connection.id},
            )
            self._connections.discard(connection)
            await connection.close(code=status.WS_1013_TRY_AGAIN_LATER)

        logger.debug(
            "Broadcast frame",
            extra={
                "recipients": len(self._connections),
                "failed": len(failed),
            },
        )
