"""DNSE senses API adapter for quarterly profitability metrics."""

import logging
from typing import List, Optional

import httpx

from data.adapters.errors import DataSourceError
from data.adapters.parsing import to_float
from schemas.analysis import ProfitabilityMetric, ProfitabilitySeries

logger = logging.getLogger(__name__)

SOURCE_NAME = "dnse"


class DNSEAdapter:
    """Adapter for DNSE business-result data (ROE, ROA, margins per quarter)."""

    BASE_URL = "https://api-bo.dnse.com.vn/senses-api"

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

    async def get_profitability(
        self,
        symbol: str,
        cycle_type: str = "quy",
        cycle_number: int = 5,
    ) -> ProfitabilitySeries:
        """Get profitability metrics for the last ``cycle_number`` periods.

        Args:
            symbol: Ticker (e.g., 'FPT')
            cycle_type: 'quy' for quarterly, 'nam' for yearly
            cycle_number: Number of periods

        Returns:
            ProfitabilitySeries with period labels and one value list per metric.

        Raises:
            DataSourceError: On transport errors or malformed payloads.
        """
        client = await self._get_client()
        try:
            response = await client.get(
                "/business-result",
                params={
                    "symbol": symbol.upper(),
                    "code": "PROFITABLE_EFFICIENCY",
                    "cycleType": cycle_type,
                    "cycleNumber": cycle_number,
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise DataSourceError(SOURCE_NAME, f"business-result returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DataSourceError(SOURCE_NAME, f"business-result request failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(SOURCE_NAME, "business-result returned invalid JSON") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise DataSourceError(SOURCE_NAME, "business-result response has no data array")

        metrics: List[ProfitabilityMetric] = []
        for item in payload["data"]:
            if not isinstance(item, dict) or not item.get("label"):
                continue
            values = item.get("y") if isinstance(item.get("y"), list) else []
            metrics.append(ProfitabilityMetric(
                label=str(item["label"]),
                values=[to_float(v) for v in values],
            ))

        quarters = [str(q) for q in payload.get("x") or []]
        logger.debug(f"Fetched {len(metrics)} profitability metrics for {symbol}")
        return ProfitabilitySeries(quarters=quarters, metrics=metrics)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
