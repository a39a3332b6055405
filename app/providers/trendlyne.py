"""Trendlyne smart-options provider for NSE index option chains."""
import httpx
from typing import Any, Dict, List, Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from app.providers import OptionChainProvider, ProviderError
from app.core.config import settings


logger = logging.getLogger(__name__)


class TrendlyneProvider(OptionChainProvider):
    """Trendlyne implementation of the option chain provider."""

    # Internal ids of the supported indices
    KNOWN_IDS = {
        "NIFTY": "1887",
        "BANKNIFTY": "1889",
        "FINNIFTY": "20374",
    }

    SEARCH_QUERIES = {
        "NIFTY": "Nifty 50",
        "BANKNIFTY": "Nifty Bank",
        "FINNIFTY": "Nifty Fin Service",
    }

    HEADERS = {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        "Accept": "application/json",
    }

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.trendlyne_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.http_timeout,
            headers=self.HEADERS
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _make_request(self, path: str, params: dict) -> dict:
        """Make HTTP request with retry logic for transient failures.

        Retries up to 3 times with exponential backoff for timeouts and
        connection errors. HTTP status errors are not retried.
        """
        response = await self.client.get(f"{self.base_url}/{path}", params=params)
        response.raise_for_status()
        return response.json()

    async def _get_json(self, path: str, params: dict) -> dict:
        """Request JSON, translating transport failures into ProviderError."""
        try:
            return await self._make_request(path, params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise ProviderError(
                    "Trendlyne rate limit exceeded (429). Please wait before making more requests."
                )
            raise ProviderError(f"Trendlyne API error: {str(e)}")
        except httpx.TimeoutException as e:
            raise ProviderError(f"Trendlyne API timeout after retries: {str(e)}")
        except httpx.HTTPError as e:
            raise ProviderError(f"Trendlyne API connection error: {str(e)}")
        except ValueError as e:
            raise ProviderError(f"Trendlyne API returned invalid JSON: {str(e)}")
        except Exception as e:
            raise ProviderError(f"Unexpected error: {str(e)}")

    async def resolve_stock_id(self, symbol: str) -> Optional[str]:
        """
        Resolve an index symbol to its Trendlyne stock id.

        Known indices are answered locally; anything else goes through the
        contract search endpoint.
        """
        symbol = symbol.upper().strip()
        if symbol in self.KNOWN_IDS:
            logger.info(f"Using known stock id for {symbol}: {self.KNOWN_IDS[symbol]}")
            return self.KNOWN_IDS[symbol]

        query = self.SEARCH_QUERIES.get(symbol, symbol)
        logger.info(f"Searching stock id for {symbol} (query: {query})")
        try:
            data = await self._get_json("search-contract-stock/", {"query": query})
        except ProviderError as e:
            logger.warning(f"Stock id lookup failed for {symbol}: {e}")
            return None

        results = (data.get("body") or {}).get("data") or []
        if not results or not results[0].get("stock_id"):
            logger.warning(f"No stock id found for {symbol}")
            return None

        stock_id = str(results[0]["stock_id"])
        logger.info(f"Found stock id for {symbol}: {stock_id}")
        return stock_id

    async def get_expiry_dates(self, stock_id: str) -> List[str]:
        """Fetch expiry dates for a stock id, nearest first."""
        logger.info(f"Fetching expiry dates for stock id {stock_id}")
        try:
            data = await self._get_json("search-contract-expiry-dates/", {"stock_pk": stock_id})
        except ProviderError as e:
            logger.error(f"Expiry fetch failed for {stock_id}: {e}")
            return []

        dates = ((data.get("body") or {}).get("data") or {}).get("all_exp_list") or []
        if not dates:
            logger.warning(f"No expiry dates returned for {stock_id}")
            return []

        logger.info(f"Found {len(dates)} expiry dates, nearest: {dates[0]}")
        return list(dates)

    async def get_snapshot_payload(self, stock_id: str, expiry_date: str, time_label: str) -> Dict[str, Any]:
        """
        Fetch the live OI payload from market open up to ``time_label``.

        Raises:
            ProviderError: If the request fails
        """
        params = {
            "stockId": stock_id,
            "expDateList": expiry_date,
            "minTime": settings.market_open,
            "maxTime": time_label,
            "format": "json",
        }
        logger.debug(f"Fetching snapshot for {stock_id} {expiry_date} at {time_label}")
        return await self._get_json("live-oi-data/", params)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
