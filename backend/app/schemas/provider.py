from typing import Literal

from pydantic import BaseModel, Field

ProviderStatus = Literal["ok", "error", "rate_limited", "empty", "missing_key"]


class TickerSnapshot(BaseModel):
    provider: str
    symbol: str
    cache_key: str
    payload: dict = Field(default_factory=dict)
    status: ProviderStatus = "error"


class CompletionResult(BaseModel):
    provider: str
    content: str | None = None
    status: ProviderStatus = "error"
    detail: str | None = None
