"""Stock analysis API endpoints."""

from fastapi import APIRouter

from analysis.engine import AnalysisOutcome
from api.deps import Engine
from api.exceptions import ValidationError
from schemas.analysis import (
    AnalysisRequest,
    IndicatorSet,
    StockAnalysisResponse,
    SymbolAnalysisRequest,
)

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _validate_symbol(symbol: str) -> str:
    symbol = symbol.strip().upper()
    if not symbol or not symbol.isalnum() or len(symbol) > 20:
        raise ValidationError(f"Invalid stock symbol: '{symbol}'", field="symbol")
    return symbol


def _to_response(outcome: AnalysisOutcome) -> StockAnalysisResponse:
    return StockAnalysisResponse(
        symbol=outcome.symbol,
        model=outcome.model,
        analyzed_at=outcome.analyzed_at,
        analysis=outcome.result,
        raw_text=outcome.raw_text,
        indicators=outcome.indicators,
        data_errors=outcome.data_errors,
    )


@router.post("", response_model=StockAnalysisResponse)
async def analyze_stock(payload: AnalysisRequest, engine: Engine) -> StockAnalysisResponse:
    """Analyze a stock from caller-supplied technical, fundamental and news data."""
    outcome = await engine.analyze(payload)
    return _to_response(outcome)


@router.post("/{symbol}", response_model=StockAnalysisResponse)
async def analyze_symbol(
    symbol: str,
    engine: Engine,
    payload: SymbolAnalysisRequest | None = None,
) -> StockAnalysisResponse:
    """Fetch market data for a symbol, compute indicators and analyze it."""
    symbol = _validate_symbol(symbol)
    model = payload.model if payload else None
    outcome = await engine.analyze_symbol(symbol, model)
    return _to_response(outcome)


@router.get("/{symbol}/indicators", response_model=IndicatorSet)
async def get_indicators(symbol: str, engine: Engine) -> IndicatorSet:
    """Technical indicators for a symbol, without calling the language model."""
    symbol = _validate_symbol(symbol)
    return await engine.get_indicators(symbol)
