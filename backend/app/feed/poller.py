from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from app.config.settings import BinanceSettings
from app.db.storage import MarketStore
from app.jobs.periodic import PeriodicTask
from app.providers import binance
from app.schemas.provider import TickerSnapshot

logger = logging.getLogger(__name__)


class PollingRefresher:
    """Fallback ingestion: pull 24h tickers over HTTP on a fixed interval."""

    def __init__(
        self,
        store: MarketStore,
        settings: BinanceSettings,
        fetch: Callable[[str], TickerSnapshot] = binance.fetch_ticker_24h,
    ) -> None:
        self.store = store
        self.settings = settings
        self.symbols = [symbol.upper() for symbol in settings.poll_symbols]
        self._fetch = fetch
        self._timer: PeriodicTask | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.running

    async def initialize(self) -> None:
        if self._timer is not None:
            return
        await self.refresh_all()
        if self._stopped:
            return
        self._timer = PeriodicTask("market-poller", self.settings.poll_interval_seconds, self.refresh_all)
        self._timer.start()

    async def refresh_all(self) -> int:
        results = await asyncio.gather(*(self.refresh_symbol(symbol) for symbol in self.symbols))
        updated = sum(1 for ok in results if ok)
        logger.info("Market data refreshed for %d/%d symbols", updated, len(self.symbols))
        return updated

    async def refresh_symbol(self, symbol: str) -> bool:
        timeout = self.settings.request_timeout_seconds + 5
        try:
            ticker = await asyncio.wait_for(asyncio.to_thread(self._fetch, symbol), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Ticker fetch for %s timed out", symbol)
            return False
        except Exception:
            logger.exception("Ticker fetch for %s failed", symbol)
            return False

        if ticker.status != "ok":
            logger.warning("Ticker fetch for %s returned %s", symbol, ticker.status)
            return False

        try:
            await self.store.upsert_market_data(binance.ticker_to_snapshot(ticker))
        except Exception:
            logger.exception("Failed to store ticker for %s", symbol)
            return False
        return True

    def stop(self) -> None:
        self._stopped = True
        if self._timer is not None:
            self._timer.stop()
