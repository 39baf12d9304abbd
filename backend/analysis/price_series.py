"""Daily price series preparation.

Indicator calculations assume a series ordered ascending by session date with
no duplicate sessions and nothing dated after the current market day. Upstream
feeds return newest-first and occasionally include a placeholder row for a
session that has not traded yet, so every series goes through
``prepare_series`` before it reaches the indicator engine.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

DEFAULT_MARKET_TIMEZONE = "Asia/Ho_Chi_Minh"


@dataclass(frozen=True)
class PricePoint:
    """One trading session."""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float


def market_today(timezone: str = DEFAULT_MARKET_TIMEZONE, now: Optional[datetime] = None) -> date:
    """Return the current calendar date in the market's timezone."""
    tz = ZoneInfo(timezone)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    return now.astimezone(tz).date()


def prepare_series(points: Iterable[PricePoint], today: date) -> List[PricePoint]:
    """Drop future sessions, de-duplicate by date and sort ascending.

    When the same session date appears twice the later occurrence wins.
    """
    by_date = {}
    for point in points:
        if point.date > today:
            continue
        by_date[point.date] = point
    return [by_date[d] for d in sorted(by_date)]


def closes(series: List[PricePoint]) -> List[float]:
    return [p.close for p in series]


def volumes(series: List[PricePoint]) -> List[float]:
    return [p.volume for p in series]
