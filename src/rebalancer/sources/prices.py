"""USD prices from CoinGecko, with last-known-price retention."""

import asyncio
from datetime import datetime, timezone

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rebalancer.config import PricesConfig, Secrets
from rebalancer.sources.base import PriceSource, SourceFetchError

logger = structlog.get_logger(__name__)


class CoinGeckoPriceSource(PriceSource):
    """Fetches USD prices from the CoinGecko simple/price endpoint.

    Token symbols are mapped to CoinGecko coin ids via `prices.coin_ids`;
    several symbols may share one id (e.g. USDT and 1USDT -> tether).
    """

    def __init__(self, config: PricesConfig, secrets: Secrets, *, session: requests.Session | None = None):
        self._config = config
        self._session = session or requests.Session()
        if secrets.coingecko_api_key:
            self._session.headers["x-cg-demo-api-key"] = secrets.coingecko_api_key

    def get_prices(self, symbols: list[str]) -> dict[str, float]:
        ids_by_symbol = {s: self._config.coin_ids[s] for s in symbols if s in self._config.coin_ids}
        unmapped = [s for s in symbols if s not in ids_by_symbol]
        if unmapped:
            logger.debug("prices.unmapped_symbols", symbols=unmapped)
        if not ids_by_symbol:
            return {}

        coin_ids = sorted(set(ids_by_symbol.values()))
        try:
            response = self._get_with_retry(coin_ids)
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            logger.error("prices.fetch_failed", coin_ids=coin_ids, error=str(e))
            raise SourceFetchError(f"Couldn't retrieve USD prices: {e}") from e

        prices = {}
        for symbol, coin_id in ids_by_symbol.items():
            usd = (data.get(coin_id) or {}).get("usd")
            if usd:
                prices[symbol] = float(usd)

        logger.debug("prices.fetched", count=len(prices), requested=len(symbols))
        return prices

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def _get_with_retry(self, coin_ids: list[str]) -> requests.Response:
        return self._session.get(
            self._config.base_url,
            params={"ids": ",".join(coin_ids), "vs_currencies": "usd"},
            timeout=self._config.timeout_seconds,
        )


class PriceBook:
    """Last-known USD prices for a fixed set of symbols.

    A failed refresh never erases a price; a symbol missing from a successful
    response also keeps its previous price.
    """

    def __init__(self, source: PriceSource, symbols: list[str], change_threshold: float = 0.001):
        self._source = source
        self._symbols = list(symbols)
        self._change_threshold = change_threshold
        self._prices: dict[str, float] = {}
        self.last_updated: datetime | None = None

    @property
    def prices(self) -> dict[str, float]:
        return dict(self._prices)

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def track(self, symbols: list[str]) -> None:
        """Add symbols to the set being priced."""
        for symbol in symbols:
            if symbol not in self._symbols:
                self._symbols.append(symbol)

    def get(self, symbol: str) -> float:
        return self._prices.get(symbol, 0.0)

    def refresh(self) -> bool:
        """Fetch fresh prices.

        Returns:
            True if any price moved by more than the change threshold

        Raises:
            SourceFetchError: If the source fails; existing prices are kept
        """
        fresh = self._source.get_prices(self._symbols)
        changed = self._has_changed(fresh)
        self._prices.update({s: p for s, p in fresh.items() if p > 0})
        self.last_updated = datetime.now(timezone.utc)

        logger.info("prices.refreshed", count=len(fresh), changed=changed)
        return changed

    def refresh_quietly(self) -> bool:
        """Best-effort refresh for background polling. Never raises."""
        try:
            return self.refresh()
        except SourceFetchError as e:
            logger.warning("prices.background_refresh_failed", error=str(e))
            return False

    async def poll(self, interval_seconds: float, on_change=None, max_iterations: int | None = None) -> None:
        """Refresh prices every `interval_seconds` until cancelled.

        Args:
            interval_seconds: Delay between refreshes
            on_change: Optional callable invoked with the new prices whenever
                a refresh reports a meaningful change
            max_iterations: Stop after this many refreshes (None = forever)
        """
        iteration = 0
        while max_iterations is None or iteration < max_iterations:
            await asyncio.sleep(interval_seconds)
            if self.refresh_quietly() and on_change is not None:
                on_change(self.prices)
            iteration += 1

    def _has_changed(self, fresh: dict[str, float]) -> bool:
        for symbol, price in fresh.items():
            previous = self._prices.get(symbol)
            if previous is None or abs(previous - price) > self._change_threshold:
                return True
        return False
