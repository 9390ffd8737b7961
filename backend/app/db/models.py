# backend/app/db/models.py

import datetime
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class MarketData(Base):
    __tablename__ = "market_data"

    # One row per symbol, replaced on every write
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    symbol = Column(String, unique=True, nullable=False, index=True)
    price = Column(Numeric(18, 8), nullable=False)
    change_percent = Column(Numeric(10, 4), nullable=False)
    volume = Column(Numeric(28, 8), nullable=False)
    high_24h = Column(Numeric(18, 8), nullable=False)
    low_24h = Column(Numeric(18, 8), nullable=False)
    last_update = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<MarketData(symbol='{self.symbol}', price='{self.price}')>"


class AIStrategy(Base):
    __tablename__ = "ai_strategies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    symbol = Column(String, nullable=False, index=True)
    signal = Column(String, nullable=False)
    confidence = Column(Numeric(5, 2), nullable=False)
    analysis = Column(JSONB, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def __repr__(self):
        return f"<AIStrategy(symbol='{self.symbol}', signal='{self.signal}')>"
