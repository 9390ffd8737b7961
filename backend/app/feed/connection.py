from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from app.db.storage import MarketStore
from app.feed.hub import FanoutHub
from app.schemas.market import NormalizedTick

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ClientConnectionManager:
    """Bridge one browser WebSocket to the FanoutHub.

    Sends one ``market_data`` snapshot, then a ``market_update`` per tick
    until either side closes. Ticks pass through a bounded queue so that the
    synchronous hub callback never awaits a socket write.
    """

    def __init__(
        self,
        websocket: WebSocket,
        store: MarketStore,
        hub: FanoutHub,
        queue_size: int = 1000,
    ) -> None:
        self.websocket = websocket
        self.store = store
        self.hub = hub
        self.state = ConnectionState.CONNECTING
        self._queue: asyncio.Queue[NormalizedTick] = asyncio.Queue(maxsize=queue_size)
        self._unsubscribe: Callable[[], None] | None = None

    async def serve(self) -> None:
        try:
            await self.websocket.accept()
            self.state = ConnectionState.OPEN
            logger.info("WebSocket client connected: %s", id(self.websocket))

            snapshot = await self.store.get_market_data()
            await self.send(
                {"type": "market_data", "data": [item.to_message() for item in snapshot]}
            )
            if self.state is not ConnectionState.OPEN:
                return
            self._unsubscribe = self.hub.subscribe(self.on_tick)

            tasks = {
                asyncio.create_task(self._pump()),
                asyncio.create_task(self._drain_inbound()),
            }
            try:
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            for task in done:
                task.result()
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WebSocket client %s failed", id(self.websocket))
        finally:
            self.close()

    def on_tick(self, tick: NormalizedTick) -> None:
        if self.state is not ConnectionState.OPEN:
            return
        try:
            self._queue.put_nowait(tick)
        except asyncio.QueueFull:
            logger.debug("Dropping %s update for slow client %s", tick.symbol, id(self.websocket))

    async def _pump(self) -> None:
        while self.state is ConnectionState.OPEN:
            tick = await self._queue.get()
            await self.send({"type": "market_update", "data": tick.to_message()})

    async def _drain_inbound(self) -> None:
        # Nothing is expected from the client; read only to notice the close
        while self.state is ConnectionState.OPEN:
            message = await self.websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return

    async def send(self, message: dict) -> bool:
        if self.state is not ConnectionState.OPEN:
            return False
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return False
        try:
            await self.websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError, OSError):
            self.close()
            return False
        return True

    def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        was_open = self.state is ConnectionState.OPEN
        self.state = ConnectionState.CLOSED
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        if was_open:
            logger.info("WebSocket client disconnected: %s", id(self.websocket))
