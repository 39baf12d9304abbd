"""Technical analysis indicators for daily price series.

Series-valued indicators return one value per input session and use NaN for
positions inside the warm-up window. Scalar summaries return None when there
is not enough history to compute them.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from analysis.price_series import PricePoint, closes, volumes
from schemas.analysis import (
    AmplitudeRegime,
    BollingerBands,
    CrossoverAction,
    CrossoverScan,
    CrossoverState,
    CrossoverStatus,
    IndicatorSet,
    MomentumStats,
    PivotLevels,
    RangeStats,
    Trend,
    VolumeStats,
)

MA_SHORT_WINDOW = 10
MA_LONG_WINDOW = 30
BOLLINGER_WINDOW = 20
BOLLINGER_MULTIPLIER = 2.0
MOMENTUM_SHORT_WINDOW = 5
MOMENTUM_LONG_WINDOW = 10
VOLUME_AVERAGE_WINDOW = 10
RANGE_WINDOW = 252  # trading sessions in ~52 weeks
PIVOT_DECIMALS = 2

# Crossover scanning
CROSSOVER_LOOKBACK = 5
# Current MA gap as a percentage of the largest historical gap in the same direction
APPROACHING_EXTREME_PCT = 60.0
AT_EXTREME_PCT = 80.0


@dataclass(frozen=True)
class IndicatorParams:
    """Windows and thresholds used by ``IndicatorEngine``."""
    ma_short_window: int = MA_SHORT_WINDOW
    ma_long_window: int = MA_LONG_WINDOW
    bollinger_window: int = BOLLINGER_WINDOW
    bollinger_multiplier: float = BOLLINGER_MULTIPLIER
    momentum_short_window: int = MOMENTUM_SHORT_WINDOW
    momentum_long_window: int = MOMENTUM_LONG_WINDOW
    volume_window: int = VOLUME_AVERAGE_WINDOW
    range_window: int = RANGE_WINDOW
    crossover_lookback: int = CROSSOVER_LOOKBACK
    approaching_extreme_pct: float = APPROACHING_EXTREME_PCT
    at_extreme_pct: float = AT_EXTREME_PCT


def is_defined(value: Optional[float]) -> bool:
    """True for a real number, False for None or NaN."""
    return value is not None and not math.isnan(value)


def _latest(series: Sequence[float]) -> Optional[float]:
    if not series or not is_defined(series[-1]):
        return None
    return float(series[-1])


class TechnicalIndicators:
    """Calculate technical analysis indicators."""

    @staticmethod
    def moving_average(values: Sequence[float], window: int) -> List[float]:
        """Simple moving average; NaN while fewer than ``window`` values are available."""
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")

        result: List[float] = []
        for i in range(len(values)):
            if i < window - 1:
                result.append(math.nan)
            else:
                result.append(sum(values[i - window + 1:i + 1]) / window)
        return result

    @staticmethod
    def rolling_std(values: Sequence[float], window: int, index: int) -> float:
        """Population standard deviation of the window ending at ``index``."""
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        if index < window - 1 or index >= len(values):
            return math.nan
        return float(np.std(values[index - window + 1:index + 1]))

    @staticmethod
    def bollinger_bands(
        values: Sequence[float],
        window: int = BOLLINGER_WINDOW,
        multiplier: float = BOLLINGER_MULTIPLIER,
    ) -> Tuple[List[float], List[float], List[float]]:
        """Bollinger Bands: returns (upper, middle, lower)."""
        middle = TechnicalIndicators.moving_average(values, window)
        upper: List[float] = []
        lower: List[float] = []

        for i, mid in enumerate(middle):
            if math.isnan(mid):
                upper.append(math.nan)
                lower.append(math.nan)
                continue
            std = TechnicalIndicators.rolling_std(values, window, i)
            upper.append(mid + multiplier * std)
            lower.append(mid - multiplier * std)

        return (upper, middle, lower)

    @staticmethod
    def band_position(
        close: Optional[float],
        upper: Optional[float],
        lower: Optional[float],
    ) -> Optional[float]:
        """Where the close sits inside the bands: 0 at the lower band, 1 at the upper.

        Not clamped, a close outside the bands gives a value below 0 or above 1.
        """
        if not (is_defined(close) and is_defined(upper) and is_defined(lower)):
            return None
        width = upper - lower
        if width == 0:
            return None
        return (close - lower) / width

    @staticmethod
    def woodie_pivots(high: float, low: float, close: float) -> PivotLevels:
        """Woodie pivot point with three resistance and three support levels."""
        pivot = (high + low + 2 * close) / 4
        return PivotLevels(
            pivot=round(pivot, PIVOT_DECIMALS),
            r1=round(2 * pivot - low, PIVOT_DECIMALS),
            r2=round(pivot + (high - low), PIVOT_DECIMALS),
            r3=round(high + 2 * (pivot - low), PIVOT_DECIMALS),
            s1=round(2 * pivot - high, PIVOT_DECIMALS),
            s2=round(pivot - (high - low), PIVOT_DECIMALS),
            s3=round(low - 2 * (high - pivot), PIVOT_DECIMALS),
        )

    @staticmethod
    def momentum(values: Sequence[float], window: int) -> Optional[float]:
        """Percent change over ``window`` sessions."""
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        if len(values) < window + 1:
            return None
        base = values[-window - 1]
        if base == 0:
            return None
        return (values[-1] - base) / base * 100

    @staticmethod
    def volume_stats(vols: Sequence[float], window: int = VOLUME_AVERAGE_WINDOW) -> VolumeStats:
        """Latest volume against the trailing average (latest session included)."""
        if not vols:
            return VolumeStats()
        current = float(vols[-1])
        if len(vols) < window:
            return VolumeStats(current=current)
        average = sum(vols[-window:]) / window
        ratio = current / average if average > 0 else None
        return VolumeStats(current=current, average=average, ratio=ratio)

    @staticmethod
    def price_range(values: Sequence[float], window: int = RANGE_WINDOW) -> RangeStats:
        """High, low and position of the latest close over the trailing window."""
        if not values:
            return RangeStats()
        recent = values[-window:]
        high = float(max(recent))
        low = float(min(recent))
        position = (values[-1] - low) / (high - low) if high > low else None
        return RangeStats(high=high, low=low, position=position)


# ---------------------------------------------------------------------------
# Moving-average crossovers
# ---------------------------------------------------------------------------

def ma_gap_pct(short: float, long: float) -> float:
    """Gap between two moving averages as a percentage of the long one."""
    if not (is_defined(short) and is_defined(long)) or long == 0:
        return math.nan
    return (short - long) / long * 100


def detect_recent_crossover(
    short_ma: Sequence[float],
    long_ma: Sequence[float],
    lookback: int = CROSSOVER_LOOKBACK,
) -> CrossoverScan:
    """Look for a sign change of (short - long) within the last ``lookback`` session pairs.

    The most recent crossover wins. A scan where no pair has both averages
    defined reports ``insufficient_data`` rather than ``none``.
    """
    last = min(len(short_ma), len(long_ma)) - 1
    scanned = False

    for i in range(last, max(last - lookback, 0), -1):
        pair = (short_ma[i - 1], long_ma[i - 1], short_ma[i], long_ma[i])
        if not all(is_defined(v) for v in pair):
            continue
        scanned = True
        prev_diff = pair[0] - pair[1]
        diff = pair[2] - pair[3]
        if prev_diff <= 0 < diff:
            return CrossoverScan(status=CrossoverStatus.GOLDEN_CROSS, index=i, sessions_ago=last - i)
        if prev_diff > 0 >= diff:
            return CrossoverScan(status=CrossoverStatus.DEATH_CROSS, index=i, sessions_ago=last - i)

    if scanned:
        return CrossoverScan(status=CrossoverStatus.NONE)
    return CrossoverScan(status=CrossoverStatus.INSUFFICIENT_DATA)


def classify_crossover(
    short_ma: Sequence[float],
    long_ma: Sequence[float],
    params: IndicatorParams = IndicatorParams(),
) -> Optional[CrossoverState]:
    """Classify the current MA gap against the largest gaps seen in the history.

    Returns None when the latest pair of averages is not defined yet.
    """
    n = min(len(short_ma), len(long_ma))
    if n == 0:
        return None

    current = ma_gap_pct(short_ma[n - 1], long_ma[n - 1])
    if math.isnan(current):
        return None

    gaps = [g for g in (ma_gap_pct(short_ma[i], long_ma[i]) for i in range(n)) if not math.isnan(g)]
    max_bullish = max(max(gaps), 0.0)
    max_bearish = min(min(gaps), 0.0)

    if current > 0:
        trend = Trend.UP
        extreme = max_bullish
    elif current < 0:
        trend = Trend.DOWN
        extreme = max_bearish
    else:
        trend = Trend.FLAT
        extreme = 0.0

    ratio = current / extreme * 100 if extreme != 0 else None

    regime = AmplitudeRegime.TRENDING
    if ratio is not None:
        if ratio >= params.at_extreme_pct:
            regime = AmplitudeRegime.AT_EXTREME
        elif ratio >= params.approaching_extreme_pct:
            regime = AmplitudeRegime.APPROACHING_EXTREME

    action = CrossoverAction.NONE
    if regime != AmplitudeRegime.TRENDING:
        # Stretched up-trend: take profit. Stretched down-trend: contrarian entry.
        action = CrossoverAction.PROFIT_TAKING if trend == Trend.UP else CrossoverAction.CONTRARIAN_ENTRY

    return CrossoverState(
        trend=trend,
        gap_pct=current,
        max_bullish_pct=max_bullish,
        max_bearish_pct=max_bearish,
        extreme_ratio_pct=ratio,
        regime=regime,
        action=action,
        recent=detect_recent_crossover(short_ma, long_ma, params.crossover_lookback),
    )


# ---------------------------------------------------------------------------
# Indicator set
# ---------------------------------------------------------------------------

class IndicatorEngine:
    """Derive a full ``IndicatorSet`` from a prepared price series."""

    def __init__(self, params: Optional[IndicatorParams] = None) -> None:
        self.params = params or IndicatorParams()

    def compute(self, series: Sequence[PricePoint]) -> IndicatorSet:
        """Compute every indicator for the latest session of ``series``.

        ``series`` must already be ascending with no duplicate or future
        sessions (see ``analysis.price_series.prepare_series``).
        """
        if not series:
            return IndicatorSet()

        p = self.params
        close_values = closes(list(series))
        volume_values = volumes(list(series))
        last = series[-1]

        ma_short = TechnicalIndicators.moving_average(close_values, p.ma_short_window)
        ma_long = TechnicalIndicators.moving_average(close_values, p.ma_long_window)
        upper, middle, lower = TechnicalIndicators.bollinger_bands(
            close_values, p.bollinger_window, p.bollinger_multiplier
        )
        bands = BollingerBands(upper=_latest(upper), middle=_latest(middle), lower=_latest(lower))
        pivots = TechnicalIndicators.woodie_pivots(last.high, last.low, last.close)

        return IndicatorSet(
            as_of=last.date,
            sessions=len(series),
            current_price=float(last.close),
            ma_short=_latest(ma_short),
            ma_long=_latest(ma_long),
            bollinger=bands,
            band_position=TechnicalIndicators.band_position(last.close, bands.upper, bands.lower),
            pivots=pivots,
            buy_price=pivots.s2,
            momentum=MomentumStats(
                short=TechnicalIndicators.momentum(close_values, p.momentum_short_window),
                long=TechnicalIndicators.momentum(close_values, p.momentum_long_window),
            ),
            volume=TechnicalIndicators.volume_stats(volume_values, p.volume_window),
            range52=TechnicalIndicators.price_range(close_values, p.range_window),
            crossover=classify_crossover(ma_short, ma_long, p),
        )


def compute_indicator_set(
    series: Sequence[PricePoint],
    params: Optional[IndicatorParams] = None,
) -> IndicatorSet:
    return IndicatorEngine(params).compute(series)
