from app.cache import get_ticker, set_ticker
from app.schemas.provider import TickerSnapshot


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.expirations: dict[str, int] = {}

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.expirations[key] = ttl


class BrokenRedis:
    def get(self, key: str) -> str | None:
        raise ConnectionError("redis down")

    def setex(self, key: str, ttl: int, value: str) -> None:
        raise ConnectionError("redis down")


def test_cache_roundtrip(monkeypatch) -> None:
    fake = FakeRedis()
    monkeypatch.setattr("app.cache._get_client", lambda: fake)

    snapshot = TickerSnapshot(
        provider="binance",
        symbol="BTCUSDT",
        cache_key="binance:ticker24h:BTCUSDT",
        payload={"symbol": "BTCUSDT", "lastPrice": "65247.50"},
        status="ok",
    )

    set_ticker(snapshot, ttl_seconds=10)
    cached = get_ticker(snapshot.cache_key)

    assert cached is not None
    assert cached.cache_key == snapshot.cache_key
    assert cached.payload == snapshot.payload
    assert fake.expirations[snapshot.cache_key] == 10


def test_cache_failures_degrade_to_miss(monkeypatch) -> None:
    monkeypatch.setattr("app.cache._get_client", lambda: BrokenRedis())

    snapshot = TickerSnapshot(provider="binance", symbol="BTCUSDT", cache_key="k", status="ok")
    set_ticker(snapshot, ttl_seconds=10)

    assert get_ticker("k") is None


def test_corrupt_cache_entry_is_ignored(monkeypatch) -> None:
    fake = FakeRedis()
    fake.store["k"] = "{not json"
    monkeypatch.setattr("app.cache._get_client", lambda: fake)

    assert get_ticker("k") is None
