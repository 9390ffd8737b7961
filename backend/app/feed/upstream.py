from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from app.config.settings import BinanceSettings
from app.db.storage import MarketStore
from app.feed.hub import FanoutHub
from app.providers.binance import build_stream_url
from app.schemas.market import NormalizedTick, to_decimal

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("s", "c", "P", "v", "h", "l")


class MalformedFrame(ValueError):
    pass


def parse_ticker_frame(raw: str | bytes) -> NormalizedTick:
    """Parse a combined-stream ``{stream, data}`` ticker frame."""
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise MalformedFrame(f"invalid JSON: {exc}") from exc

    if not isinstance(message, dict):
        raise MalformedFrame("frame is not an object")
    data = message.get("data")
    if not isinstance(data, dict):
        raise MalformedFrame("frame has no data object")

    missing = [field for field in _REQUIRED_FIELDS if data.get(field) in (None, "")]
    if missing:
        raise MalformedFrame(f"missing fields: {', '.join(missing)}")

    symbol = str(data["s"]).strip().upper()
    event_time = data.get("E")
    if isinstance(event_time, int) and not isinstance(event_time, bool):
        timestamp = event_time
    else:
        timestamp = int(time.time() * 1000)

    try:
        return NormalizedTick(
            symbol=symbol,
            price=to_decimal(data["c"]),
            change_percent=to_decimal(data["P"]),
            volume=to_decimal(data["v"]),
            high_24h=to_decimal(data["h"]),
            low_24h=to_decimal(data["l"]),
            timestamp=timestamp,
        )
    except ValueError as exc:
        raise MalformedFrame(str(exc)) from exc


class UpstreamFeedClient:
    """Single combined-stream connection to the exchange ticker feed.

    Reconnects after ``attempt * reconnect_interval_seconds`` on close or
    error, up to ``max_reconnect_attempts``. Past that the feed stays down
    until restart.
    """

    def __init__(
        self,
        store: MarketStore,
        hub: FanoutHub,
        settings: BinanceSettings,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.hub = hub
        self.settings = settings
        self.symbols = [symbol.upper() for symbol in settings.stream_symbols]
        self.stream_url = build_stream_url(self.symbols)
        self._connect = connect
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._pending_writes: set[asyncio.Task] = set()
        self._stopping = False
        self.reconnect_attempts = 0
        self.connected = False
        self.failed = False

    def initialize(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self.run(), name="upstream-feed")

    def next_reconnect_delay(self) -> float | None:
        if self.reconnect_attempts >= self.settings.max_reconnect_attempts:
            return None
        self.reconnect_attempts += 1
        return self.reconnect_attempts * self.settings.reconnect_interval_seconds

    async def run(self) -> None:
        while not self._stopping:
            try:
                async with self._connect(
                    self.stream_url,
                    ping_interval=self.settings.ping_interval_seconds,
                    ping_timeout=None,
                ) as ws:
                    self.connected = True
                    self.reconnect_attempts = 0
                    logger.info("Connected to exchange stream (%d symbols)", len(self.symbols))
                    async for raw in ws:
                        self.handle_frame(raw)
                logger.info("Exchange stream closed")
            except asyncio.CancelledError:
                raise
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                logger.warning("Exchange stream error: %s", exc)
            except Exception:
                logger.exception("Unexpected exchange stream failure")
            finally:
                self.connected = False

            if self._stopping:
                break
            delay = self.next_reconnect_delay()
            if delay is None:
                self.failed = True
                logger.error(
                    "Max reconnection attempts (%d) reached; exchange stream stays down",
                    self.settings.max_reconnect_attempts,
                )
                break
            logger.info(
                "Reconnecting in %.1fs (%d/%d)",
                delay,
                self.reconnect_attempts,
                self.settings.max_reconnect_attempts,
            )
            await self._sleep(delay)

    def handle_frame(self, raw: str | bytes) -> NormalizedTick | None:
        try:
            tick = parse_ticker_frame(raw)
        except MalformedFrame as exc:
            logger.warning("Dropping malformed frame: %s", exc)
            return None

        task = asyncio.create_task(self._persist(tick))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

        self.hub.publish(tick)
        return tick

    async def _persist(self, tick: NormalizedTick) -> None:
        try:
            await self.store.upsert_market_data(tick.to_snapshot_in())
        except Exception:
            logger.exception("Failed to persist tick for %s", tick.symbol)

    async def flush(self) -> None:
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def stop(self) -> None:
        self._stopping = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.flush()
