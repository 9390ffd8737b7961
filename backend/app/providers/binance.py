from __future__ import annotations

import json
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from app.cache import get_ticker, set_ticker
from app.config.settings import settings
from app.schemas.market import MarketSnapshotIn
from app.schemas.provider import TickerSnapshot


_TICKER_24H_PATH = "/api/v3/ticker/24hr"
_TICKER_FIELDS = ("symbol", "lastPrice", "priceChangePercent", "volume", "highPrice", "lowPrice")


def _build_url(path: str, params: dict[str, str]) -> str:
    base_url = settings.binance.rest_base_url.rstrip("/")
    return f"{base_url}{path}?{urlencode(params)}"


def build_stream_url(symbols: list[str]) -> str:
    streams = "/".join(f"{symbol.lower()}@ticker" for symbol in symbols)
    base_url = settings.binance.ws_base_url.rstrip("/")
    return f"{base_url}/stream?streams={streams}"


def fetch_ticker_24h(symbol: str) -> TickerSnapshot:
    symbol = symbol.strip().upper()
    cache_key = f"binance:ticker24h:{symbol}"
    cached = get_ticker(cache_key)
    if cached:
        return cached

    url = _build_url(_TICKER_24H_PATH, {"symbol": symbol})
    request = Request(url, headers={"Accept": "application/json"})
    try:
        with urlopen(request, timeout=settings.binance.request_timeout_seconds) as response:
            body = response.read().decode("utf-8")
        payload = json.loads(body)
    except HTTPError as exc:
        status = "rate_limited" if exc.code in (418, 429) else "error"
        return TickerSnapshot(provider="binance", symbol=symbol, cache_key=cache_key, status=status)
    except (URLError, json.JSONDecodeError, TimeoutError, socket.timeout):
        return TickerSnapshot(provider="binance", symbol=symbol, cache_key=cache_key, status="error")

    if not isinstance(payload, dict):
        return TickerSnapshot(provider="binance", symbol=symbol, cache_key=cache_key, status="error")

    if any(payload.get(field) in (None, "") for field in _TICKER_FIELDS):
        return TickerSnapshot(provider="binance", symbol=symbol, cache_key=cache_key, status="empty")

    snapshot = TickerSnapshot(
        provider="binance",
        symbol=symbol,
        cache_key=cache_key,
        payload=payload,
        status="ok",
    )
    set_ticker(snapshot, settings.binance.ticker_cache_ttl_seconds)
    return snapshot


def ticker_to_snapshot(ticker: TickerSnapshot) -> MarketSnapshotIn:
    payload = ticker.payload
    return MarketSnapshotIn(
        symbol=payload["symbol"],
        price=payload["lastPrice"],
        change_percent=payload["priceChangePercent"],
        volume=payload["volume"],
        high_24h=payload["highPrice"],
        low_24h=payload["lowPrice"],
    )
