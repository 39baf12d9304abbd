from schemas.analysis import (
    AnalysisRequest,
    AnalysisResult,
    AnalystRecommendation,
    Fundamentals,
    HorizonView,
    IndicatorSet,
    NewsAnalysis,
    NewsItem,
    Signal,
    StockAnalysisResponse,
)
from schemas.health import HealthResponse
from schemas.llm import ModelInfo, ModelListResponse

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "AnalystRecommendation",
    "Fundamentals",
    "HealthResponse",
    "HorizonView",
    "IndicatorSet",
    "ModelInfo",
    "ModelListResponse",
    "NewsAnalysis",
    "NewsItem",
    "Signal",
    "StockAnalysisResponse",
]
