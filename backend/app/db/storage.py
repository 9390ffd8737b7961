from __future__ import annotations

import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import AIStrategy, MarketData
from app.schemas.market import MarketSnapshot, MarketSnapshotIn
from app.schemas.strategy import StrategyRecord, StrategyRecordIn


def build_market_upsert(data: MarketSnapshotIn, now: datetime.datetime):
    insert_values = {
        "symbol": data.symbol,
        "price": data.price,
        "change_percent": data.change_percent,
        "volume": data.volume,
        "high_24h": data.high_24h,
        "low_24h": data.low_24h,
        "last_update": now,
    }
    # Full replace: every value column is overwritten on conflict
    update_values = {
        MarketData.price: data.price,
        MarketData.change_percent: data.change_percent,
        MarketData.volume: data.volume,
        MarketData.high_24h: data.high_24h,
        MarketData.low_24h: data.low_24h,
        MarketData.last_update: now,
    }
    stmt = insert(MarketData).values(**insert_values)
    return stmt.on_conflict_do_update(index_elements=[MarketData.symbol], set_=update_values)


class MarketStore:
    """Read/write access to market snapshots and strategy records.

    Feed and poller writes to the same symbol are not ordered against each
    other; the last upsert to reach the database wins.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_market_data(self) -> list[MarketSnapshot]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketData).order_by(MarketData.last_update.desc())
            )
            return [MarketSnapshot.model_validate(row) for row in result.scalars().all()]

    async def get_market_data_by_symbol(self, symbol: str) -> MarketSnapshot | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MarketData).where(MarketData.symbol == symbol.strip().upper())
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return MarketSnapshot.model_validate(row)

    async def upsert_market_data(self, data: MarketSnapshotIn) -> MarketSnapshot:
        now = datetime.datetime.utcnow()
        async with self._session_factory() as session:
            await session.execute(build_market_upsert(data, now))
            await session.commit()
            result = await session.execute(
                select(MarketData).where(MarketData.symbol == data.symbol)
            )
            return MarketSnapshot.model_validate(result.scalar_one())

    async def create_strategy_record(self, record: StrategyRecordIn) -> StrategyRecord:
        async with self._session_factory() as session:
            strategy = AIStrategy(
                name=record.name,
                description=record.description,
                symbol=record.symbol,
                signal=record.signal,
                confidence=record.confidence,
                analysis=record.analysis,
                is_active=record.is_active,
            )
            session.add(strategy)
            await session.commit()
            await session.refresh(strategy)
            return StrategyRecord.model_validate(strategy)

    async def get_active_strategies(self) -> list[StrategyRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AIStrategy)
                .where(AIStrategy.is_active.is_(True))
                .order_by(AIStrategy.created_at.desc())
            )
            return [StrategyRecord.model_validate(row) for row in result.scalars().all()]
