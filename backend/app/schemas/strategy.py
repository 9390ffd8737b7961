from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

Signal = Literal["BUY", "SELL", "HOLD"]


class TechnicalIndicators(BaseModel):
    rsi: float = 50.0
    macd: str = "neutral"
    trend: str = "sideways"


class PriceTargets(BaseModel):
    support: float = 0.0
    resistance: float = 0.0


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signal: Signal = "HOLD"
    confidence: float = 50.0
    summary: str = ""
    technical_indicators: TechnicalIndicators = Field(
        default_factory=TechnicalIndicators, alias="technicalIndicators"
    )
    price_targets: PriceTargets = Field(default_factory=PriceTargets, alias="priceTargets")
    timestamp: Optional[int] = None
    degraded: bool = False

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MarketContext(BaseModel):
    symbol: str
    price: Decimal
    change_percent: Decimal
    volume: Decimal
    high_24h: Decimal
    low_24h: Decimal


class StrategyRecordIn(BaseModel):
    name: str
    description: str
    symbol: str
    signal: Signal
    confidence: Decimal
    analysis: dict = Field(default_factory=dict)
    is_active: bool = True


class StrategyRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str
    symbol: str
    signal: Signal
    confidence: Decimal
    analysis: dict
    is_active: bool = Field(serialization_alias="isActive")
    created_at: datetime.datetime | None = Field(default=None, serialization_alias="createdAt")

    @field_serializer("confidence")
    def _confidence_str(self, value: Decimal) -> str:
        return str(value)

    def to_message(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class AnalyzeRequest(BaseModel):
    symbol: str
    timeframe: str = "1h"
