"""Analysis engine that runs the stock analysis pipeline.

Market data is fetched concurrently and each source degrades to an empty value
on failure. The text-generation call is the only step whose failure aborts the
run; whatever text it returns always normalizes to an ``AnalysisResult``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, List, Optional, TypeVar

from analysis.indicators import IndicatorEngine
from analysis.normalizer import parse_analysis_response
from analysis.price_series import PricePoint, market_today, prepare_series
from analysis.prompt import build_stock_analysis_prompt
from config import Settings
from data.adapters.dnse import DNSEAdapter
from data.adapters.vndirect import VNDirectAdapter
from llm.gemini_client import GeminiClient
from llm.models import get_validated_model
from schemas.analysis import (
    AnalysisRequest,
    AnalysisResult,
    AnalystRecommendation,
    Fundamentals,
    IndicatorSet,
    ProfitabilitySeries,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MarketData:
    """Everything gathered for one symbol; missing pieces are empty."""
    symbol: str
    prices: List[PricePoint] = field(default_factory=list)
    fundamentals: Optional[Fundamentals] = None
    recommendations: List[AnalystRecommendation] = field(default_factory=list)
    profitability: Optional[ProfitabilitySeries] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class AnalysisOutcome:
    symbol: str
    model: str
    result: AnalysisResult
    raw_text: str
    analyzed_at: datetime
    indicators: Optional[IndicatorSet] = None
    data_errors: List[str] = field(default_factory=list)


class StockAnalysisEngine:
    """Orchestrates data gathering, indicators, prompt, generation and normalization."""

    def __init__(
        self,
        client: GeminiClient,
        vndirect: VNDirectAdapter,
        dnse: DNSEAdapter,
        settings: Settings,
        indicator_engine: Optional[IndicatorEngine] = None,
    ) -> None:
        self.client = client
        self.vndirect = vndirect
        self.dnse = dnse
        self.settings = settings
        self.indicator_engine = indicator_engine or IndicatorEngine()

    async def _degrade(self, label: str, call: Awaitable[T], default: T, errors: List[str]) -> T:
        """Await ``call``; on failure log, record and return ``default``."""
        try:
            return await call
        except Exception as e:
            logger.warning(f"{label} unavailable, continuing without it: {e}")
            errors.append(f"{label}: {e}")
            return default

    async def gather_market_data(self, symbol: str) -> MarketData:
        """Fetch prices, ratios, recommendations and profitability concurrently."""
        symbol = symbol.strip().upper()
        errors: List[str] = []

        prices, fundamentals, recommendations, profitability = await asyncio.gather(
            self._degrade(
                "prices",
                self.vndirect.get_stock_prices(symbol, self.settings.PRICE_HISTORY_SESSIONS),
                [],
                errors,
            ),
            self._degrade("fundamentals", self.vndirect.get_financial_ratios(symbol), None, errors),
            self._degrade("recommendations", self.vndirect.get_recommendations(symbol), [], errors),
            self._degrade("profitability", self.dnse.get_profitability(symbol), None, errors),
        )

        return MarketData(
            symbol=symbol,
            prices=prices,
            fundamentals=fundamentals,
            recommendations=recommendations,
            profitability=profitability,
            errors=errors,
        )

    def build_indicators(self, prices: List[PricePoint], now: Optional[datetime] = None) -> IndicatorSet:
        """Prepare the series in market time and compute the indicator set."""
        today = market_today(self.settings.MARKET_TIMEZONE, now)
        series = prepare_series(prices, today)
        return self.indicator_engine.compute(series)

    async def analyze(self, request: AnalysisRequest, data_errors: Optional[List[str]] = None) -> AnalysisOutcome:
        """Run prompt -> generation -> normalization for a prepared request.

        ``data_errors`` lists market data sources that failed while building
        the request; they are carried on the outcome.

        Raises:
            LLMNotConfiguredError: No API key configured.
            GenerationError: The generation call failed, timed out or returned no text.
        """
        model = get_validated_model(request.model)
        prompt = build_stock_analysis_prompt(request)
        logger.info(f"Analyzing {request.symbol} with {model} ({len(prompt)} char prompt)")

        text = await self.client.generate(prompt, model)
        result = parse_analysis_response(text)

        outcome = AnalysisOutcome(
            symbol=request.symbol,
            model=model,
            result=result,
            raw_text=text,
            analyzed_at=datetime.now(timezone.utc),
            indicators=request.technical,
            data_errors=list(data_errors or []),
        )
        logger.info(f"Analysis complete: {describe_outcome(outcome)}")
        return outcome

    async def analyze_symbol(self, symbol: str, model: Optional[str] = None) -> AnalysisOutcome:
        """Gather market data for ``symbol`` and analyze it."""
        data = await self.gather_market_data(symbol)
        technical = self.build_indicators(data.prices) if data.prices else None

        fundamentals = data.fundamentals
        if data.profitability is not None:
            fundamentals = (fundamentals or Fundamentals()).model_copy(
                update={"profitability": data.profitability}
            )

        request = AnalysisRequest(
            symbol=data.symbol,
            technical=technical,
            fundamentals=fundamentals,
            recommendations=data.recommendations,
            model=model,
        )
        return await self.analyze(request, data_errors=data.errors)

    async def get_indicators(self, symbol: str) -> IndicatorSet:
        """Fetch the price history for ``symbol`` and compute indicators only.

        Raises:
            DataSourceError: The price history could not be fetched.
        """
        prices = await self.vndirect.get_stock_prices(symbol.strip().upper(), self.settings.PRICE_HISTORY_SESSIONS)
        return self.build_indicators(prices)

    async def close(self) -> None:
        await self.client.close()
        await self.vndirect.close()
        await self.dnse.close()


def describe_outcome(outcome: AnalysisOutcome) -> dict[str, Any]:
    """Compact summary of an outcome for logging."""
    return {
        "symbol": outcome.symbol,
        "model": outcome.model,
        "short_term": outcome.result.short_term.signal.value,
        "long_term": outcome.result.long_term.signal.value,
        "has_prices": outcome.result.buy_price is not None,
        "data_errors": len(outcome.data_errors),
    }
