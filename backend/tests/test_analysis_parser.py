import json

from app.analysis.parser import extract_json_object, keyword_signal, parse_analysis
from app.config.settings import AnalysisSettings

SETTINGS = AnalysisSettings()


def test_structured_reply_is_parsed() -> None:
    content = json.dumps(
        {
            "signal": "BUY",
            "confidence": 72,
            "summary": "Momentum is building above support.",
            "technicalIndicators": {"rsi": 61.5, "macd": "bullish", "trend": "uptrend"},
            "priceTargets": {"support": 63000, "resistance": 67000},
        }
    )

    result = parse_analysis(content, SETTINGS)

    assert result.signal == "BUY"
    assert result.confidence == 72.0
    assert result.summary == "Momentum is building above support."
    assert result.technical_indicators.macd == "bullish"
    assert result.price_targets.resistance == 67000.0
    assert result.degraded is False
    payload = result.to_payload()
    assert payload["technicalIndicators"]["rsi"] == 61.5
    assert payload["priceTargets"]["support"] == 63000.0


def test_fenced_json_reply_is_parsed() -> None:
    content = 'Here you go:\n```json\n{"signal": "sell", "confidence": "65", "summary": "Weak"}\n```'

    result = parse_analysis(content, SETTINGS)

    assert result.signal == "SELL"
    assert result.confidence == 65.0


def test_plain_text_with_sell_degrades_to_sell() -> None:
    result = parse_analysis("The market looks weak, I would sell here.", SETTINGS)

    assert result.signal == "SELL"
    assert result.degraded is True
    assert result.confidence == SETTINGS.keyword_confidence


def test_plain_text_keyword_classification_is_three_way() -> None:
    assert parse_analysis("Strongly bullish setup.", SETTINGS).signal == "BUY"
    assert parse_analysis("Nothing to report today.", SETTINGS).signal == "HOLD"
    assert keyword_signal("buy the dip or sell the rip", SETTINGS) == "HOLD"
    assert keyword_signal("no hints at all", SETTINGS) is None


def test_partial_json_gets_defaults() -> None:
    result = parse_analysis('{"signal": "buy"}', SETTINGS)

    assert result.signal == "BUY"
    assert result.degraded is True
    assert result.technical_indicators.rsi == 50.0
    assert result.technical_indicators.trend == "sideways"
    assert result.price_targets.support == 0.0


def test_unknown_signal_falls_back_to_keywords() -> None:
    content = '{"signal": "maybe", "confidence": 80, "summary": "Bearish divergence on the daily."}'

    result = parse_analysis(content, SETTINGS)

    assert result.signal == "SELL"
    assert result.degraded is True


def test_confidence_is_clamped_and_bad_sections_are_repaired() -> None:
    content = json.dumps(
        {
            "signal": "HOLD",
            "confidence": 250,
            "summary": "Range bound.",
            "technicalIndicators": {"rsi": "n/a", "macd": "neutral"},
            "priceTargets": "unknown",
        }
    )

    result = parse_analysis(content, SETTINGS)

    assert result.confidence == 100.0
    assert result.technical_indicators.rsi == 50.0
    assert result.technical_indicators.macd == "neutral"
    assert result.price_targets.resistance == 0.0


def test_extract_json_object_ignores_non_objects() -> None:
    assert extract_json_object("[1, 2]") is None
    assert extract_json_object('prefix {"a": 1} suffix') == {"a": 1}


def test_keyword_vote_counts_inflected_forms() -> None:
    assert keyword_signal("Whales are selling into strength.", SETTINGS) == "SELL"
    assert keyword_signal("Funds bought the dip and keep buying.", SETTINGS) == "BUY"
    assert keyword_signal("Sellers are absent.", SETTINGS) is None
