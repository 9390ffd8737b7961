from __future__ import annotations

import datetime
from decimal import Decimal, InvalidOperation
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def to_decimal(value: object) -> Decimal:
    # str() first so floats keep their shortest repr (0.1 stays 0.1)
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


class MarketSnapshotIn(BaseModel):
    """Full replacement values for one symbol's row."""

    symbol: str
    price: Decimal
    change_percent: Decimal
    volume: Decimal
    high_24h: Decimal
    low_24h: Decimal

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("symbol is required")
        return cleaned

    @field_validator("price", "change_percent", "volume", "high_24h", "low_24h", mode="before")
    @classmethod
    def _decimal(cls, value: object) -> Decimal:
        return to_decimal(value)


class MarketSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    symbol: str
    price: Decimal
    change_percent: Decimal = Field(serialization_alias="changePercent")
    volume: Decimal
    high_24h: Decimal = Field(serialization_alias="high24h")
    low_24h: Decimal = Field(serialization_alias="low24h")
    last_update: datetime.datetime | None = Field(default=None, serialization_alias="lastUpdate")

    @field_serializer("price", "change_percent", "volume", "high_24h", "low_24h")
    def _decimal_str(self, value: Decimal) -> str:
        return str(value)

    def to_message(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NormalizedTick(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["ticker"] = "ticker"
    symbol: str
    price: Decimal
    change_percent: Decimal = Field(serialization_alias="changePercent")
    volume: Decimal
    high_24h: Decimal = Field(serialization_alias="high24h")
    low_24h: Decimal = Field(serialization_alias="low24h")
    timestamp: int

    @field_serializer("price", "change_percent", "volume", "high_24h", "low_24h")
    def _decimal_str(self, value: Decimal) -> str:
        return str(value)

    def to_snapshot_in(self) -> MarketSnapshotIn:
        return MarketSnapshotIn(
            symbol=self.symbol,
            price=self.price,
            change_percent=self.change_percent,
            volume=self.volume,
            high_24h=self.high_24h,
            low_24h=self.low_24h,
        )

    def to_message(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
