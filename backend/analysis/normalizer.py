"""Normalize parsed model output into an ``AnalysisResult``.

Whatever the model returned, the caller gets back a complete, bounded record:
both horizons present with a BUY/SELL/HOLD signal and a 0-100 confidence,
prices only when some horizon says BUY, and exactly three risks and three
opportunities.
"""

import logging
import math
from typing import Any, List, Optional, Sequence

from analysis.json_repair import load_analysis_object
from schemas.analysis import (
    AnalysisResult,
    HorizonView,
    NewsAnalysis,
    NewsSentiment,
    Signal,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 50
MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 100

# Models often quote VND prices in thousands (85.5 meaning 85,500 VND).
PRICE_UNIT_THRESHOLD = 1000
PRICE_UNIT_MULTIPLIER = 1000
# Anything lower is not a price in either unit; rescaled prices stay >= 1000
MIN_PRICE = 1

LIST_SIZE = 3
MIN_ITEM_LENGTH = 4  # shorter strings are treated as noise

SHORT_TERM_MISSING_SUMMARY = "Not enough data for a short-term assessment."
LONG_TERM_MISSING_SUMMARY = "Not enough data for a long-term assessment."
SHORT_TERM_DEFAULT_SUMMARY = "Keep watching the technical indicators before acting."
LONG_TERM_DEFAULT_SUMMARY = "Review the fundamentals further before acting."

DEFAULT_RISKS = (
    "Market volatility may move the price against the position",
    "Liquidity risk when entering or exiting the position",
    "Financial indicators need further monitoring",
)
DEFAULT_OPPORTUNITIES = (
    "Growth potential from the sector outlook",
    "Valuation may be attractive relative to fundamentals",
    "Opportunity from the current technical trend",
)

NEWS_SUMMARY_DEFAULT = "Not enough news coverage to assess sentiment."
NEWS_IMPACT_DEFAULT = "Keep following news flow for price impact."

_NULL_STRINGS = {"null", "undefined"}
_BUY_MARKERS = ("MUA", "BUY")
_SELL_MARKERS = ("BÁN", "SELL")
_POSITIVE_MARKERS = ("positive", "tích cực")
_NEGATIVE_MARKERS = ("negative", "tiêu cực")


# ---------------------------------------------------------------------------
# Field normalizers
# ---------------------------------------------------------------------------

def _to_number(value: Any) -> Optional[float]:
    """Coerce a JSON value to float; None when non-numeric or NaN."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            number = math.inf if value > 0 else -math.inf
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def normalize_signal(value: Any) -> Signal:
    """Map free text to BUY/SELL/HOLD. BUY markers are checked first."""
    if value is None:
        return Signal.HOLD
    text = str(value).strip().upper()
    if any(marker in text for marker in _BUY_MARKERS):
        return Signal.BUY
    if any(marker in text for marker in _SELL_MARKERS):
        return Signal.SELL
    return Signal.HOLD


def normalize_confidence(value: Any) -> int:
    """Round half up and clamp to 0-100; non-numeric becomes 50."""
    number = _to_number(value)
    if number is None:
        return DEFAULT_CONFIDENCE
    if math.isinf(number):
        return MAX_CONFIDENCE if number > 0 else MIN_CONFIDENCE
    rounded = math.floor(number + 0.5)
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, rounded))


def normalize_price(value: Any) -> Optional[float]:
    """Null for missing, non-numeric or sub-unit values; values under 1000 are read as thousands."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in _NULL_STRINGS:
        return None
    number = _to_number(value)
    if number is None or math.isinf(number) or number < MIN_PRICE:
        return None
    if number < PRICE_UNIT_THRESHOLD:
        return round(number * PRICE_UNIT_MULTIPLIER, 2)
    return number


def normalize_list(value: Any, defaults: Sequence[str]) -> List[str]:
    """Keep non-trivial strings, cap at three and pad from ``defaults``."""
    items: List[str] = []
    if isinstance(value, list):
        for item in value:
            if not isinstance(item, str):
                continue
            item = item.strip()
            if len(item) >= MIN_ITEM_LENGTH:
                items.append(item)
            if len(items) == LIST_SIZE:
                break

    for default in defaults:
        if len(items) >= LIST_SIZE:
            break
        items.append(default)
    return items


def normalize_news_sentiment(value: Any) -> NewsSentiment:
    text = str(value or "").lower()
    if any(marker in text for marker in _POSITIVE_MARKERS):
        return NewsSentiment.POSITIVE
    if any(marker in text for marker in _NEGATIVE_MARKERS):
        return NewsSentiment.NEGATIVE
    return NewsSentiment.NEUTRAL


def _summary(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def _normalize_horizon(value: Any, missing_summary: str, default_summary: str) -> HorizonView:
    if not isinstance(value, dict):
        return HorizonView(signal=Signal.HOLD, confidence=DEFAULT_CONFIDENCE, summary=missing_summary)
    return HorizonView(
        signal=normalize_signal(value.get("signal")),
        confidence=normalize_confidence(value.get("confidence")),
        summary=_summary(value.get("summary"), default_summary),
    )


def _normalize_news(value: Any) -> Optional[NewsAnalysis]:
    if not isinstance(value, dict):
        return None
    return NewsAnalysis(
        sentiment=normalize_news_sentiment(value.get("sentiment")),
        summary=_summary(value.get("summary"), NEWS_SUMMARY_DEFAULT),
        impact_on_price=_summary(value.get("impactOnPrice"), NEWS_IMPACT_DEFAULT),
    )


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------

def default_analysis_result() -> AnalysisResult:
    """Result used when nothing usable could be parsed."""
    return AnalysisResult(
        short_term=HorizonView(signal=Signal.HOLD, confidence=DEFAULT_CONFIDENCE, summary=SHORT_TERM_MISSING_SUMMARY),
        long_term=HorizonView(signal=Signal.HOLD, confidence=DEFAULT_CONFIDENCE, summary=LONG_TERM_MISSING_SUMMARY),
        buy_price=None,
        target_price=None,
        stop_loss=None,
        risks=list(DEFAULT_RISKS),
        opportunities=list(DEFAULT_OPPORTUNITIES),
    )


def normalize_analysis(parsed: dict) -> AnalysisResult:
    """Turn a parsed (possibly partial) analysis object into an ``AnalysisResult``.

    Args:
        parsed: Dictionary decoded from model output, keyed in camelCase.

    Returns:
        A fully populated result. Prices are dropped unless at least one
        horizon carries a BUY signal.
    """
    short_term = _normalize_horizon(parsed.get("shortTerm"), SHORT_TERM_MISSING_SUMMARY, SHORT_TERM_DEFAULT_SUMMARY)
    long_term = _normalize_horizon(parsed.get("longTerm"), LONG_TERM_MISSING_SUMMARY, LONG_TERM_DEFAULT_SUMMARY)

    result = AnalysisResult(
        short_term=short_term,
        long_term=long_term,
        buy_price=normalize_price(parsed.get("buyPrice")),
        target_price=normalize_price(parsed.get("targetPrice")),
        stop_loss=normalize_price(parsed.get("stopLoss")),
        risks=normalize_list(parsed.get("risks"), DEFAULT_RISKS),
        opportunities=normalize_list(parsed.get("opportunities"), DEFAULT_OPPORTUNITIES),
        news_analysis=_normalize_news(parsed.get("newsAnalysis")),
    )
    if not result.has_buy_signal:
        result = result.model_copy(update={"buy_price": None, "target_price": None, "stop_loss": None})
    return result


def parse_analysis_response(text: Optional[str]) -> AnalysisResult:
    """Parse raw model output into an ``AnalysisResult``. Never raises.

    Args:
        text: Raw response text from the text-generation service.

    Returns:
        The normalized result, or ``default_analysis_result()`` when no
        analysis object can be recovered from the text.
    """
    parsed = load_analysis_object(text or "")
    if parsed is None:
        logger.warning("Falling back to default analysis result (%d chars of output)", len(text or ""))
        return default_analysis_result()
    return normalize_analysis(parsed)
