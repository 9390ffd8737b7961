import datetime
import uuid

import pytest

from app.schemas.market import MarketSnapshot, MarketSnapshotIn
from app.schemas.strategy import StrategyRecord, StrategyRecordIn


class FakeStore:
    """Dict-backed stand-in for MarketStore: one row per symbol."""

    def __init__(self) -> None:
        self.rows: dict[str, MarketSnapshot] = {}
        self.records: list[StrategyRecord] = []
        self.upsert_calls = 0
        self.fail_upserts = False

    async def get_market_data(self) -> list[MarketSnapshot]:
        return list(self.rows.values())

    async def get_market_data_by_symbol(self, symbol: str) -> MarketSnapshot | None:
        return self.rows.get(symbol.upper())

    async def upsert_market_data(self, data: MarketSnapshotIn) -> MarketSnapshot:
        self.upsert_calls += 1
        if self.fail_upserts:
            raise RuntimeError("database unavailable")
        snapshot = MarketSnapshot(
            symbol=data.symbol,
            price=data.price,
            change_percent=data.change_percent,
            volume=data.volume,
            high_24h=data.high_24h,
            low_24h=data.low_24h,
            last_update=datetime.datetime.utcnow(),
        )
        self.rows[data.symbol] = snapshot
        return snapshot

    async def create_strategy_record(self, record: StrategyRecordIn) -> StrategyRecord:
        stored = StrategyRecord(
            id=uuid.uuid4(),
            created_at=datetime.datetime.utcnow(),
            **record.model_dump(),
        )
        self.records.append(stored)
        return stored

    async def get_active_strategies(self) -> list[StrategyRecord]:
        return [record for record in reversed(self.records) if record.is_active]


def make_snapshot_in(symbol: str = "BTCUSDT", price: str = "65000") -> MarketSnapshotIn:
    return MarketSnapshotIn(
        symbol=symbol,
        price=price,
        change_percent="1.25",
        volume="1000",
        high_24h="66000",
        low_24h="64000",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def snapshot_in():
    return make_snapshot_in
