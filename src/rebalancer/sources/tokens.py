"""Token list repository with an explicit time-to-live."""

import time
from collections.abc import Callable

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rebalancer.config import TokensConfig
from rebalancer.models import TokenInfo
from rebalancer.sources.base import SourceFetchError, TokenSource

logger = structlog.get_logger(__name__)

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


class TokenListRepository(TokenSource):
    """Caches a remote token list and filters it per chain.

    The list is refetched once `ttl_seconds` have passed since the last
    successful fetch. If a refetch fails while a list is cached, the stale
    list keeps being served.
    """

    def __init__(
        self,
        config: TokensConfig,
        native_chain_id: int,
        *,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self.ttl_seconds = config.ttl_seconds
        self._session = session or requests.Session()
        self._clock = clock
        self._native_token = TokenInfo(
            chain_id=native_chain_id,
            address=NATIVE_TOKEN_ADDRESS,
            symbol=config.native_symbol,
            name=config.native_symbol,
            decimals=config.native_decimals,
        )
        self._tokens: list[TokenInfo] | None = None
        self._fetched_at: float | None = None

    def is_stale(self) -> bool:
        if self._tokens is None or self._fetched_at is None:
            return True
        return self._clock() - self._fetched_at > self.ttl_seconds

    def invalidate(self) -> None:
        self._fetched_at = None

    def get(self, chain_id: int) -> list[TokenInfo]:
        return [token for token in self._token_list() if token.chain_id == chain_id]

    def supported(self, chain_id: int) -> list[TokenInfo]:
        supported = set(self._config.supported_symbols)
        return [token for token in self.get(chain_id) if token.symbol in supported]

    def get_by_symbol(self, chain_id: int, symbol: str) -> TokenInfo | None:
        """Case-insensitive symbol lookup."""
        wanted = symbol.lower()
        for token in self.get(chain_id):
            if token.symbol.lower() == wanted:
                return token
        return None

    def _token_list(self) -> list[TokenInfo]:
        if not self.is_stale():
            return self._tokens

        try:
            tokens = self._fetch()
        except SourceFetchError:
            if self._tokens is not None:
                logger.warning("tokens.serving_stale", count=len(self._tokens))
                return self._tokens
            raise

        self._tokens = [*tokens, self._native_token]
        self._fetched_at = self._clock()
        logger.info("tokens.refreshed", count=len(self._tokens))
        return self._tokens

    def _fetch(self) -> list[TokenInfo]:
        try:
            response = self._get_with_retry()
            response.raise_for_status()
            data = response.json()
            return [TokenInfo(**raw) for raw in data.get("tokens", [])]
        except Exception as e:
            logger.error("tokens.fetch_failed", url=self._config.token_list_url, error=str(e))
            raise SourceFetchError(f"Failed to fetch token list: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def _get_with_retry(self) -> requests.Response:
        return self._session.get(
            self._config.token_list_url, timeout=self._config.timeout_seconds
        )
