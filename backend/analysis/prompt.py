"""Prompt construction for stock analysis requests."""

from collections import Counter
from typing import List, Optional

from schemas.analysis import (
    AnalysisRequest,
    AnalystRecommendation,
    Fundamentals,
    IndicatorSet,
    NewsItem,
)

# Reference cut-loss level below the S2 buy price
CUT_LOSS_RATIO = 0.965

RESPONSE_FORMAT = """{
  "shortTerm": {"signal": "BUY | SELL | HOLD", "confidence": 0-100, "summary": "..."},
  "longTerm": {"signal": "BUY | SELL | HOLD", "confidence": 0-100, "summary": "..."},
  "buyPrice": number or null,
  "targetPrice": number or null,
  "stopLoss": number or null,
  "risks": ["...", "...", "..."],
  "opportunities": ["...", "...", "..."],
  "newsAnalysis": {"sentiment": "positive | negative | neutral", "summary": "...", "impactOnPrice": "..."}
}"""


def _fmt(value: Optional[float], digits: int = 2, suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{value:,.{digits}f}{suffix}"


def _pct(fraction: Optional[float]) -> str:
    # Ratio sources report ROE, ROA and dividend yield as fractions
    return _fmt(fraction * 100 if fraction is not None else None, suffix="%")


def _technical_section(technical: IndicatorSet) -> List[str]:
    lines = ["## Technical data"]
    lines.append(f"- Current price: {_fmt(technical.current_price, 0)} VND")
    lines.append(f"- MA10: {_fmt(technical.ma_short, 0)}, MA30: {_fmt(technical.ma_long, 0)}")

    crossover = technical.crossover
    if crossover is not None:
        lines.append(
            f"- MA10 vs MA30 gap: {_fmt(crossover.gap_pct, suffix='%')} (trend {crossover.trend.value}), "
            f"largest historical gaps {_fmt(crossover.max_bullish_pct, suffix='%')} / "
            f"{_fmt(crossover.max_bearish_pct, suffix='%')}"
        )
        if crossover.extreme_ratio_pct is not None:
            lines.append(
                f"- Gap is {_fmt(crossover.extreme_ratio_pct, 0, '%')} of the historical extreme "
                f"(regime: {crossover.regime.value}, hint: {crossover.action.value})"
            )
        if crossover.recent.sessions_ago is not None:
            lines.append(
                f"- Recent {crossover.recent.status.value.replace('_', ' ')} "
                f"{crossover.recent.sessions_ago} session(s) ago"
            )

    bands = technical.bollinger
    if bands.middle is not None:
        lines.append(
            f"- Bollinger Bands (20, 2): upper {_fmt(bands.upper, 0)}, middle {_fmt(bands.middle, 0)}, "
            f"lower {_fmt(bands.lower, 0)}; position {_fmt(technical.band_position)}"
        )
    lines.append(
        f"- Momentum: 5 sessions {_fmt(technical.momentum.short, suffix='%')}, "
        f"10 sessions {_fmt(technical.momentum.long, suffix='%')}"
    )
    volume = technical.volume
    if volume.current is not None:
        ratio = volume.ratio * 100 if volume.ratio is not None else None
        lines.append(
            f"- Volume: {_fmt(volume.current, 0)} vs 10-session average {_fmt(volume.average, 0)} "
            f"({_fmt(ratio, 0, '%')})"
        )
    range52 = technical.range52
    if range52.high is not None:
        lines.append(
            f"- 52-week range: low {_fmt(range52.low, 0)}, high {_fmt(range52.high, 0)}, "
            f"position {_fmt(range52.position)}"
        )
    if technical.buy_price is not None:
        lines.append(
            f"- Woodie S2 support (reference buy price): {_fmt(technical.buy_price, 0)}, "
            f"reference cut-loss: {_fmt(technical.buy_price * CUT_LOSS_RATIO, 0)}"
        )
    return lines


def _profitability_trend(values: List[Optional[float]]) -> str:
    defined = [v for v in values if v is not None]
    if len(defined) < 2:
        return "n/a"
    if defined[-1] > defined[0]:
        return "improving"
    if defined[-1] < defined[0]:
        return "declining"
    return "flat"


def _fundamentals_section(fundamentals: Fundamentals) -> List[str]:
    lines = ["## Fundamentals"]
    lines.append(f"- P/E: {_fmt(fundamentals.pe)}, P/B: {_fmt(fundamentals.pb)}")
    lines.append(f"- ROE: {_pct(fundamentals.roe)}, ROA: {_pct(fundamentals.roa)}")
    lines.append(f"- Dividend yield: {_pct(fundamentals.dividend_yield)}")
    market_cap = fundamentals.market_cap / 1e12 if fundamentals.market_cap is not None else None
    lines.append(f"- Market cap: {_fmt(market_cap, suffix=' trillion VND')}, EPS: {_fmt(fundamentals.eps, 0)}")

    profitability = fundamentals.profitability
    if profitability and profitability.metrics:
        lines.append(f"- Quarterly profitability ({', '.join(profitability.quarters)}):")
        for metric in profitability.metrics:
            series = ", ".join(_fmt(v) for v in metric.values)
            lines.append(f"  - {metric.label}: {series} ({_profitability_trend(metric.values)})")
    return lines


def _recommendations_section(recommendations: List[AnalystRecommendation]) -> List[str]:
    counts = Counter((rec.type or "UNKNOWN").upper() for rec in recommendations)
    targets = [rec.target_price for rec in recommendations if rec.target_price]
    lines = ["## Analyst recommendations"]
    lines.append(
        f"- {len(recommendations)} report(s): "
        + ", ".join(f"{kind} {count}" for kind, count in counts.most_common())
    )
    if targets:
        lines.append(f"- Average target price: {_fmt(sum(targets) / len(targets), 0)} VND")
    for rec in recommendations[:5]:
        report_date = rec.report_date.isoformat() if rec.report_date else "n/a"
        lines.append(f"  - {rec.firm or 'Unknown firm'} ({report_date}): {rec.type}, target {_fmt(rec.target_price, 0)}")
    return lines


def _news_section(news: List[NewsItem]) -> List[str]:
    tallies = Counter(item.sentiment.value for item in news if item.sentiment)
    lines = ["## Recent news"]
    if tallies:
        lines.append("- Sentiment: " + ", ".join(f"{k} {v}" for k, v in tallies.most_common()))
    for item in news[:10]:
        source = f" [{item.source}]" if item.source else ""
        summary = f": {item.summary}" if item.summary else ""
        lines.append(f"  - {item.title}{source}{summary}")
    return lines


def build_stock_analysis_prompt(request: AnalysisRequest) -> str:
    """Build the analysis prompt for one stock.

    Sections for data the request does not carry are left out.
    """
    lines = [
        f"You are a professional equity analyst covering the Vietnamese stock market. "
        f"Analyse {request.symbol} using the data below.",
        "",
    ]

    if request.technical is not None:
        lines += _technical_section(request.technical) + [""]
    if request.fundamentals is not None:
        lines += _fundamentals_section(request.fundamentals) + [""]
    if request.recommendations:
        lines += _recommendations_section(request.recommendations) + [""]
    if request.news:
        lines += _news_section(request.news) + [""]

    lines += [
        "## Instructions",
        "- Short term (1-4 weeks): weight technical data about 70%, fundamentals 30%.",
        "- Long term (3-12 months): weight fundamentals about 70%, technical data 30%.",
        "- Prices are in VND. Only give buyPrice, targetPrice and stopLoss when a horizon is BUY, otherwise null.",
        "- List exactly 3 risks and 3 opportunities.",
        "- Answer with a single JSON object and nothing else, in this format:",
        RESPONSE_FORMAT,
    ]
    return "\n".join(lines)
