from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from app.config.settings import AnalysisSettings
from app.schemas.strategy import AnalysisResult, PriceTargets, TechnicalIndicators


CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
WORD_RE = re.compile(r"[a-z]+")

_SIGNALS = ("BUY", "SELL", "HOLD")
NEUTRAL_SUMMARY = "Unable to perform AI analysis at this time. Please try again later."


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def extract_json_object(content: str) -> dict[str, Any] | None:
    candidates: list[str] = []
    fence = CODE_FENCE_RE.search(content)
    if fence:
        candidates.append(fence.group(1))
    candidates.append(content)
    match = JSON_OBJECT_RE.search(content)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate.strip())
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def keyword_signal(text: str, settings: AnalysisSettings) -> str | None:
    words = WORD_RE.findall(text.lower())
    sell_hits = sum(1 for word in words if word in settings.sell_keywords)
    buy_hits = sum(1 for word in words if word in settings.buy_keywords)
    if sell_hits == 0 and buy_hits == 0:
        return None
    if sell_hits > buy_hits:
        return "SELL"
    if buy_hits > sell_hits:
        return "BUY"
    return "HOLD"


def _coerce_signal(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip().upper()
    if cleaned in _SIGNALS:
        return cleaned
    for signal in _SIGNALS:
        if signal in cleaned:
            return signal
    return None


def _coerce_float(raw: object, default: float) -> float:
    if isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        cleaned = raw.strip().rstrip("%").replace(",", "")
        try:
            return float(cleaned)
        except ValueError:
            return default
    return default


def _coerce_section(model, raw: object):
    if not isinstance(raw, dict):
        return model()
    try:
        return model.model_validate(raw)
    except ValidationError:
        defaults = model()
        values = {}
        for name, default in defaults.model_dump().items():
            value = raw.get(name)
            if isinstance(default, float):
                values[name] = _coerce_float(value, default)
            elif isinstance(value, str):
                values[name] = value
            else:
                values[name] = default
        return model(**values)


def neutral_analysis(summary: str = NEUTRAL_SUMMARY, confidence: float = 50.0) -> AnalysisResult:
    return AnalysisResult(signal="HOLD", confidence=confidence, summary=summary, degraded=True)


def parse_analysis(content: str, settings: AnalysisSettings) -> AnalysisResult:
    """Turn a model reply into an AnalysisResult without raising.

    Structured replies are read field by field; anything missing falls back to
    a default. Replies without a readable signal get one from keyword hits in
    the raw text, at a reduced confidence.
    """
    data = extract_json_object(content)
    if data is None:
        signal = keyword_signal(content, settings) or "HOLD"
        return AnalysisResult(
            signal=signal,
            confidence=settings.keyword_confidence,
            summary=content.strip()[:500],
            degraded=True,
        )

    degraded = False
    signal = _coerce_signal(data.get("signal"))
    if signal is None:
        degraded = True
        signal = keyword_signal(content, settings) or "HOLD"

    if "confidence" in data:
        confidence = clamp(_coerce_float(data.get("confidence"), settings.neutral_confidence))
    else:
        degraded = True
        confidence = settings.keyword_confidence

    summary = data.get("summary")
    if not isinstance(summary, str):
        degraded = True
        summary = ""

    return AnalysisResult(
        signal=signal,
        confidence=confidence,
        summary=summary.strip(),
        technical_indicators=_coerce_section(TechnicalIndicators, data.get("technicalIndicators")),
        price_targets=_coerce_section(PriceTargets, data.get("priceTargets")),
        degraded=degraded,
    )
