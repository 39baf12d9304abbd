"""Market analysis package."""
from .indicators import IndicatorEngine, IndicatorParams, TechnicalIndicators, compute_indicator_set
from .normalizer import parse_analysis_response

__all__ = [
    "IndicatorEngine",
    "IndicatorParams",
    "TechnicalIndicators",
    "compute_indicator_set",
    "parse_analysis_response",
]
