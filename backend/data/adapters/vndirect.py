"""VNDirect finfo API adapter for prices, financial ratios and broker recommendations."""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx

from analysis.price_series import PricePoint
from data.adapters.errors import DataSourceError
from data.adapters.parsing import parse_date, to_float
from schemas.analysis import AnalystRecommendation, Fundamentals

logger = logging.getLogger(__name__)

SOURCE_NAME = "vndirect"

# ratioCode -> Fundamentals field
RATIO_CODES: Dict[str, str] = {
    "PRICE_TO_EARNINGS": "pe",
    "PRICE_TO_BOOK": "pb",
    "ROAE_TR_AVG5Q": "roe",
    "ROAA_TR_AVG5Q": "roa",
    "DIVIDEND_YIELD": "dividend_yield",
    "MARKETCAP": "market_cap",
    "EPS_TR": "eps",
}

# Broker reports sometimes quote prices in thousands of VND
PRICE_UNIT_THRESHOLD = 1000
PRICE_UNIT_MULTIPLIER = 1000

RECOMMENDATION_LOOKBACK_DAYS = 365


def _rescale_price(value: Any) -> Optional[float]:
    price = to_float(value)
    if price is not None and 0 < price < PRICE_UNIT_THRESHOLD:
        return price * PRICE_UNIT_MULTIPLIER
    return price


class VNDirectAdapter:
    """Adapter for the VNDirect finfo API.

    Public, unauthenticated. Prices are split/dividend adjusted (``ad*`` fields).
    """

    BASE_URL = "https://api-finfo.vndirect.com.vn/v4"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET an endpoint and return its ``data`` array.

        Raises:
            DataSourceError: On transport errors, error statuses or malformed payloads.
        """
        client = await self._get_client()
        try:
            response = await client.get(endpoint, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise DataSourceError(SOURCE_NAME, f"{endpoint} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DataSourceError(SOURCE_NAME, f"{endpoint} request failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(SOURCE_NAME, f"{endpoint} returned invalid JSON") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise DataSourceError(SOURCE_NAME, f"{endpoint} response has no data array")
        return data

    async def get_stock_prices(self, code: str, size: int = 270) -> List[PricePoint]:
        """Get daily adjusted prices, newest first as returned by the API.

        Args:
            code: Ticker (e.g., 'FPT')
            size: Number of sessions to request

        Returns:
            List of PricePoint. Rows with a missing date or close are skipped.
        """
        rows = await self._request(
            "/stock_prices",
            params={"sort": "date:desc", "q": f"code:{code.upper()}", "size": size},
        )

        points: List[PricePoint] = []
        for row in rows:
            session = parse_date(row.get("date"))
            close = to_float(row.get("adClose"))
            if session is None or close is None:
                continue
            points.append(PricePoint(
                date=session,
                open=to_float(row.get("adOpen")) or close,
                high=to_float(row.get("adHigh")) or close,
                low=to_float(row.get("adLow")) or close,
                close=close,
                volume=to_float(row.get("nmVolume")) or 0.0,
            ))

        logger.debug(f"Fetched {len(points)} price sessions for {code}")
        return points

    async def get_financial_ratios(self, code: str) -> Fundamentals:
        """Get the latest valuation and profitability ratios."""
        rows = await self._request(
            "/ratios/latest",
            params={
                "filter": ",".join(f"ratioCode:{ratio}" for ratio in RATIO_CODES),
                "where": f"code:{code.upper()}",
                "order": "reportDate",
                "fields": "ratioCode,value",
            },
        )

        values: Dict[str, Optional[float]] = {}
        for row in rows:
            field = RATIO_CODES.get(row.get("ratioCode"))
            if field:
                values[field] = to_float(row.get("value"))
        return Fundamentals(**values)

    async def get_recommendations(
        self,
        code: str,
        start_date: Optional[date] = None,
        size: int = 100,
    ) -> List[AnalystRecommendation]:
        """Get broker recommendations published since ``start_date`` (default: one year)."""
        if start_date is None:
            start_date = date.today() - timedelta(days=RECOMMENDATION_LOOKBACK_DAYS)

        rows = await self._request(
            "/recommendations",
            params={
                "q": f"code:{code.upper()}~reportDate:gte:{start_date.isoformat()}",
                "size": size,
                "sort": "reportDate:DESC",
            },
        )

        return [
            AnalystRecommendation(
                firm=row.get("firm"),
                type=row.get("type"),
                report_date=parse_date(row.get("reportDate")),
                report_price=_rescale_price(row.get("reportPrice")),
                target_price=_rescale_price(row.get("targetPrice")),
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
