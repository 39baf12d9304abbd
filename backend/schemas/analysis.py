"""Schemas for indicator sets, analysis requests and normalized analysis results.

Every model serializes with camelCase keys (``shortTerm``, ``buyPrice``) and
accepts either camelCase or snake_case on input.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Signal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class NewsSentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Trend(str, Enum):
    """Direction of the short MA relative to the long MA."""
    UP = "TĂNG"
    DOWN = "GIẢM"
    FLAT = "ĐI NGANG"


class AmplitudeRegime(str, Enum):
    TRENDING = "trending"
    APPROACHING_EXTREME = "approaching_extreme"
    AT_EXTREME = "at_extreme"


class CrossoverAction(str, Enum):
    NONE = "none"
    PROFIT_TAKING = "profit_taking"
    CONTRARIAN_ENTRY = "contrarian_entry"


class CrossoverStatus(str, Enum):
    GOLDEN_CROSS = "golden_cross"
    DEATH_CROSS = "death_cross"
    NONE = "none"
    INSUFFICIENT_DATA = "insufficient_data"


# ---------------------------------------------------------------------------
# Indicator set
# ---------------------------------------------------------------------------

class BollingerBands(FrozenCamelModel):
    upper: Optional[float] = None
    middle: Optional[float] = None
    lower: Optional[float] = None


class PivotLevels(FrozenCamelModel):
    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float


class MomentumStats(FrozenCamelModel):
    short: Optional[float] = None
    long: Optional[float] = None


class VolumeStats(FrozenCamelModel):
    current: Optional[float] = None
    average: Optional[float] = None
    ratio: Optional[float] = None


class RangeStats(FrozenCamelModel):
    high: Optional[float] = None
    low: Optional[float] = None
    position: Optional[float] = None


class CrossoverScan(FrozenCamelModel):
    status: CrossoverStatus
    index: Optional[int] = None
    sessions_ago: Optional[int] = None


class CrossoverState(FrozenCamelModel):
    trend: Trend
    gap_pct: float
    max_bullish_pct: float
    max_bearish_pct: float
    extreme_ratio_pct: Optional[float] = None
    regime: AmplitudeRegime = AmplitudeRegime.TRENDING
    action: CrossoverAction = CrossoverAction.NONE
    recent: CrossoverScan = CrossoverScan(status=CrossoverStatus.INSUFFICIENT_DATA)


class IndicatorSet(FrozenCamelModel):
    """Indicators derived from one price series; ``None`` means not enough history."""
    as_of: Optional[date] = None
    sessions: int = 0
    current_price: Optional[float] = None
    ma_short: Optional[float] = None
    ma_long: Optional[float] = None
    bollinger: BollingerBands = BollingerBands()
    band_position: Optional[float] = None
    pivots: Optional[PivotLevels] = None
    buy_price: Optional[float] = None
    momentum: MomentumStats = MomentumStats()
    volume: VolumeStats = VolumeStats()
    range52: RangeStats = RangeStats()
    crossover: Optional[CrossoverState] = None


# ---------------------------------------------------------------------------
# Fundamentals, recommendations, news
# ---------------------------------------------------------------------------

class ProfitabilityMetric(CamelModel):
    label: str
    values: list[Optional[float]] = Field(default_factory=list)


class ProfitabilitySeries(CamelModel):
    quarters: list[str] = Field(default_factory=list)
    metrics: list[ProfitabilityMetric] = Field(default_factory=list)


class Fundamentals(CamelModel):
    pe: Optional[float] = None
    pb: Optional[float] = None
    roe: Optional[float] = None
    roa: Optional[float] = None
    dividend_yield: Optional[float] = None
    market_cap: Optional[float] = None
    eps: Optional[float] = None
    profitability: Optional[ProfitabilitySeries] = None


class AnalystRecommendation(CamelModel):
    firm: Optional[str] = None
    type: Optional[str] = None
    report_date: Optional[date] = None
    report_price: Optional[float] = None
    target_price: Optional[float] = None


class NewsItem(CamelModel):
    title: str
    summary: Optional[str] = None
    source: Optional[str] = None
    published_at: Optional[str] = None
    sentiment: Optional[NewsSentiment] = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class AnalysisRequest(CamelModel):
    """Everything the prompt builder needs for one stock."""
    symbol: str = Field(..., min_length=1, max_length=20)
    technical: Optional[IndicatorSet] = None
    fundamentals: Optional[Fundamentals] = None
    recommendations: list[AnalystRecommendation] = Field(default_factory=list)
    news: list[NewsItem] = Field(default_factory=list)
    model: Optional[str] = None

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must not be blank")
        return value


class SymbolAnalysisRequest(CamelModel):
    model: Optional[str] = None


# ---------------------------------------------------------------------------
# Normalized analysis result
# ---------------------------------------------------------------------------

class HorizonView(FrozenCamelModel):
    signal: Signal
    confidence: int = Field(ge=0, le=100)
    summary: str = Field(min_length=1)


class NewsAnalysis(FrozenCamelModel):
    sentiment: NewsSentiment
    summary: str
    impact_on_price: str


class AnalysisResult(FrozenCamelModel):
    """Sanitized analysis; the only artifact the normalizer ever returns."""
    short_term: HorizonView
    long_term: HorizonView
    buy_price: Optional[float] = None
    target_price: Optional[float] = None
    stop_loss: Optional[float] = None
    risks: list[str] = Field(min_length=3, max_length=3)
    opportunities: list[str] = Field(min_length=3, max_length=3)
    news_analysis: Optional[NewsAnalysis] = None

    @property
    def has_buy_signal(self) -> bool:
        return Signal.BUY in (self.short_term.signal, self.long_term.signal)


class StockAnalysisResponse(CamelModel):
    symbol: str
    model: str
    analyzed_at: datetime
    analysis: AnalysisResult
    raw_text: Optional[str] = None
    indicators: Optional[IndicatorSet] = None
    data_errors: list[str] = Field(default_factory=list)
