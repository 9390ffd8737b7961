from __future__ import annotations

import json
import logging

from redis import Redis

from app.config.settings import settings
from app.schemas.provider import TickerSnapshot

logger = logging.getLogger(__name__)


def _get_client() -> Redis:
    return Redis.from_url(settings.redis_url, socket_timeout=1.0)


def get_ticker(cache_key: str) -> TickerSnapshot | None:
    try:
        client = _get_client()
        raw = client.get(cache_key)
    except Exception as exc:
        logger.debug("Ticker cache read failed for %s: %s", cache_key, exc)
        return None

    if not raw:
        return None

    try:
        payload = json.loads(raw)
        return TickerSnapshot(**payload)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None


def set_ticker(snapshot: TickerSnapshot, ttl_seconds: int) -> None:
    try:
        client = _get_client()
        client.setex(snapshot.cache_key, ttl_seconds, snapshot.model_dump_json())
    except Exception as exc:
        logger.debug("Ticker cache write failed for %s: %s", snapshot.cache_key, exc)
