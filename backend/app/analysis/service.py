from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal

from app.analysis.parser import neutral_analysis, parse_analysis
from app.config.settings import AnalysisSettings
from app.db.storage import MarketStore
from app.providers import binance, openrouter
from app.schemas.strategy import AnalysisResult, MarketContext, StrategyRecord, StrategyRecordIn

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional cryptocurrency trading analyst with expertise in technical "
    "analysis. Provide accurate, data-driven trading insights."
)

USER_PROMPT_TEMPLATE = """Analyze the current market conditions for {symbol} on the {timeframe} timeframe:

Current Price: ${price}
24h Change: {change_percent}%
24h High: ${high_24h}
24h Low: ${low_24h}
Volume: {volume}

Please provide a comprehensive trading analysis including:
1. Signal (BUY/SELL/HOLD)
2. Confidence level (0-100)
3. Technical analysis summary
4. Key support and resistance levels
5. RSI estimation
6. MACD trend analysis

Format your response as JSON with the following structure:
{{
  "signal": "BUY|SELL|HOLD",
  "confidence": 0-100,
  "summary": "Brief analysis summary",
  "technicalIndicators": {{
    "rsi": 0-100,
    "macd": "bullish|bearish|neutral",
    "trend": "uptrend|downtrend|sideways"
  }},
  "priceTargets": {{
    "support": price_level,
    "resistance": price_level
  }}
}}"""


class MarketContextUnavailable(Exception):
    pass


def build_user_prompt(context: MarketContext, timeframe: str) -> str:
    return USER_PROMPT_TEMPLATE.format(
        symbol=context.symbol,
        timeframe=timeframe,
        price=context.price,
        change_percent=context.change_percent,
        high_24h=context.high_24h,
        low_24h=context.low_24h,
        volume=context.volume,
    )


class AnalysisService:
    """Request a model analysis for one symbol and record it as a strategy."""

    def __init__(self, store: MarketStore, settings: AnalysisSettings) -> None:
        self.store = store
        self.settings = settings

    async def get_market_context(self, symbol: str) -> MarketContext:
        snapshot = await self.store.get_market_data_by_symbol(symbol)
        if snapshot is not None:
            return MarketContext(
                symbol=snapshot.symbol,
                price=snapshot.price,
                change_percent=snapshot.change_percent,
                volume=snapshot.volume,
                high_24h=snapshot.high_24h,
                low_24h=snapshot.low_24h,
            )

        ticker = await asyncio.to_thread(binance.fetch_ticker_24h, symbol)
        if ticker.status != "ok":
            raise MarketContextUnavailable(f"No market data for {symbol} ({ticker.status})")
        data = binance.ticker_to_snapshot(ticker)
        return MarketContext(**data.model_dump())

    async def analyze(self, symbol: str, timeframe: str = "1h") -> AnalysisResult:
        symbol = symbol.strip().upper()
        try:
            context = await self.get_market_context(symbol)
            completion = await asyncio.wait_for(
                asyncio.to_thread(
                    openrouter.request_completion,
                    SYSTEM_PROMPT,
                    build_user_prompt(context, timeframe),
                ),
                timeout=self.settings.request_timeout_seconds + 5,
            )
        except asyncio.TimeoutError:
            logger.warning("Analysis for %s timed out", symbol)
            result = neutral_analysis(confidence=self.settings.neutral_confidence)
        except MarketContextUnavailable as exc:
            logger.warning("Analysis for %s skipped: %s", symbol, exc)
            result = neutral_analysis(confidence=self.settings.neutral_confidence)
        except Exception:
            logger.exception("Analysis for %s failed", symbol)
            result = neutral_analysis(confidence=self.settings.neutral_confidence)
        else:
            if completion.status != "ok" or completion.content is None:
                logger.warning(
                    "Analysis provider returned %s for %s: %s",
                    completion.status,
                    symbol,
                    completion.detail,
                )
                result = neutral_analysis(confidence=self.settings.neutral_confidence)
            else:
                result = parse_analysis(completion.content, self.settings)
                if result.degraded:
                    logger.warning("Analysis reply for %s was not fully structured", symbol)

        result.timestamp = int(time.time() * 1000)
        return result

    async def analyze_and_record(self, symbol: str, timeframe: str = "1h") -> StrategyRecord:
        symbol = symbol.strip().upper()
        result = await self.analyze(symbol, timeframe)
        record = StrategyRecordIn(
            name=f"Auto Analysis {symbol}",
            description=result.summary or f"{result.signal} signal for {symbol}",
            symbol=symbol,
            signal=result.signal,
            confidence=Decimal(str(round(result.confidence, 2))),
            analysis=result.to_payload(),
            is_active=True,
        )
        return await self.store.create_strategy_record(record)
