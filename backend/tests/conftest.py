"""Pytest fixtures for the stock signal pipeline test suite.

Provides:
- Test settings with a Gemini key and a short generation timeout
- Fake upstream services (Gemini, VNDirect, DNSE) served through httpx.MockTransport
- A fully wired StockAnalysisEngine backed by the fakes
- FastAPI async test client (httpx.AsyncClient + ASGITransport)
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from analysis.engine import StockAnalysisEngine
from config import Settings, get_settings
from data.adapters.dnse import DNSEAdapter
from data.adapters.vndirect import VNDirectAdapter
from llm.gemini_client import GeminiClient, GeminiConfig

# ---------------------------------------------------------------------------
# Canned model output
# ---------------------------------------------------------------------------

VALID_ANALYSIS = {
    "shortTerm": {"signal": "BUY", "confidence": 72, "summary": "Price reclaimed MA10 on rising volume."},
    "longTerm": {"signal": "HOLD", "confidence": 60, "summary": "Valuation is fair for the growth outlook."},
    "buyPrice": 85.5,
    "targetPrice": 98000,
    "stopLoss": 82.5,
    "risks": ["Foreign net selling continues", "Margin pressure from input costs", "Weak market liquidity"],
    "opportunities": ["New contracts in the pipeline", "Dividend payout above peers", "Sector rotation inflows"],
}


def gemini_payload(text: str) -> dict[str, Any]:
    """Build a generateContent response body carrying ``text``."""
    return {
        "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}],
        "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 80},
    }


class FakeGemini:
    """Programmable stand-in for the Gemini API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.response = httpx.Response(200, json=gemini_payload(json.dumps(VALID_ANALYSIS)))

    def reply_text(self, text: str) -> None:
        self.response = httpx.Response(200, json=gemini_payload(text))

    def reply_status(self, status_code: int, message: str = "") -> None:
        self.response = httpx.Response(status_code, json={"error": {"code": status_code, "message": message}})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def last_body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


# ---------------------------------------------------------------------------
# Canned market data
# ---------------------------------------------------------------------------

def make_price_rows(closes: list[float], *, end: date | None = None) -> list[dict[str, Any]]:
    """VNDirect ``stock_prices`` rows, newest first, one per calendar day."""
    if end is None:
        end = date.today() - timedelta(days=1)
    rows = []
    for i, close in enumerate(reversed(closes)):
        rows.append({
            "code": "FPT",
            "date": (end - timedelta(days=i)).isoformat(),
            "adOpen": close - 0.5,
            "adHigh": close + 1.0,
            "adLow": close - 1.0,
            "adClose": close,
            "nmVolume": 1_000_000 + i * 1_000,
        })
    return rows


class FakeMarketData:
    """Programmable stand-in for the VNDirect and DNSE APIs."""

    def __init__(self) -> None:
        self.closes = [100.0 + i * 0.5 for i in range(60)]
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for name in self.failing:
            if path.endswith(name):
                return httpx.Response(500, json={"message": "boom"})

        if path.endswith("/stock_prices"):
            return httpx.Response(200, json={"data": make_price_rows(self.closes)})
        if path.endswith("/ratios/latest"):
            return httpx.Response(200, json={"data": [
                {"code": "FPT", "ratioCode": "PRICE_TO_EARNINGS", "value": 21.4},
                {"code": "FPT", "ratioCode": "PRICE_TO_BOOK", "value": 5.2},
                {"code": "FPT", "ratioCode": "ROAE_TR_AVG5Q", "value": 0.278},
                {"code": "FPT", "ratioCode": "MARKETCAP", "value": 1.8e14},
            ]})
        if path.endswith("/recommendations"):
            return httpx.Response(200, json={"data": [
                {"code": "FPT", "firm": "SSI", "type": "BUY", "reportDate": "2025-03-01",
                 "reportPrice": 120.5, "targetPrice": 150},
                {"code": "FPT", "firm": "VCSC", "type": "HOLD", "reportDate": "2025-02-10",
                 "reportPrice": 118000, "targetPrice": 130000},
            ]})
        if path.endswith("/business-result"):
            return httpx.Response(200, json={
                "x": ["Q1/2024", "Q2/2024", "Q3/2024", "Q4/2024", "Q1/2025"],
                "data": [
                    {"label": "ROE", "y": [25.1, 26.0, 26.4, 27.2, 27.8]},
                    {"label": "ROA", "y": [11.0, 11.2, "12.1", None, 12.4]},
                ],
            })
        return httpx.Response(404, json={"message": "not found"})


# ---------------------------------------------------------------------------
# Settings & engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        GEMINI_API_KEY="test-key",
        GEMINI_TIMEOUT_SECONDS=2.0,
    )


@pytest.fixture()
def valid_analysis() -> dict[str, Any]:
    """Well-formed model output as a dict."""
    return json.loads(json.dumps(VALID_ANALYSIS))


@pytest.fixture()
def fake_gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture()
def fake_market() -> FakeMarketData:
    return FakeMarketData()


@pytest.fixture()
async def engine(
    test_settings: Settings,
    fake_gemini: FakeGemini,
    fake_market: FakeMarketData,
) -> AsyncGenerator[StockAnalysisEngine, None]:
    """StockAnalysisEngine wired to the fake upstream services."""
    market_transport = httpx.MockTransport(fake_market.handler)
    analysis_engine = StockAnalysisEngine(
        client=GeminiClient(
            GeminiConfig.from_settings(test_settings),
            transport=httpx.MockTransport(fake_gemini.handler),
        ),
        vndirect=VNDirectAdapter(transport=market_transport),
        dnse=DNSEAdapter(transport=market_transport),
        settings=test_settings,
    )
    yield analysis_engine
    await analysis_engine.close()


# ---------------------------------------------------------------------------
# HTTP client fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
async def client(
    engine: StockAnalysisEngine,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API integration tests.

    The engine and settings dependencies are overridden so requests never
    leave the process.
    """
    from api.deps import get_engine
    from main import app

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
