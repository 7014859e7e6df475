"""Wallet balances over EVM JSON-RPC."""

import itertools
from decimal import Decimal

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rebalancer.config import ChainConfig
from rebalancer.models import AssetBalance, TokenInfo
from rebalancer.sources.base import BalanceSource, SourceFetchError, TokenSource
from rebalancer.sources.tokens import NATIVE_TOKEN_ADDRESS

logger = structlog.get_logger(__name__)

# keccak256("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"


class RpcError(Exception):
    """JSON-RPC error object returned by the node."""


def format_units(raw_amount: int, decimals: int) -> float:
    """Convert integer base units into a decimal token amount."""
    return float(Decimal(raw_amount).scaleb(-decimals))


def encode_balance_of(address: str) -> str:
    """ABI-encode a balanceOf(address) call."""
    return BALANCE_OF_SELECTOR + address.lower().removeprefix("0x").rjust(64, "0")


class RpcBalanceSource(BalanceSource):
    """Reads native and ERC-20 balances for the supported tokens of one chain."""

    def __init__(
        self,
        config: ChainConfig,
        tokens: TokenSource,
        *,
        session: requests.Session | None = None,
    ):
        self._config = config
        self._tokens = tokens
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def get_all_balances(self, address: str) -> list[AssetBalance]:
        if not address:
            raise ValueError("Address is required")

        tokens = self._tokens.supported(self._config.chain_id)
        balances = [self._read_balance(token, address) for token in tokens]

        logger.info(
            "balances.fetched",
            address=address,
            chain_id=self._config.chain_id,
            tokens=len(balances),
        )
        return balances

    def _read_balance(self, token: TokenInfo, address: str) -> AssetBalance:
        try:
            if token.address == NATIVE_TOKEN_ADDRESS:
                result = self._call("eth_getBalance", [address, "latest"])
            else:
                result = self._call(
                    "eth_call",
                    [{"to": token.address, "data": encode_balance_of(address)}, "latest"],
                )
            raw_amount = int(result, 16) if result not in (None, "0x") else 0
        except Exception as e:
            logger.error(
                "balances.fetch_failed",
                symbol=token.symbol,
                token_address=token.address,
                error=str(e),
            )
            raise SourceFetchError(f"Failed to fetch balance for {token.symbol}: {e}") from e

        return AssetBalance(
            symbol=token.symbol,
            raw_amount=raw_amount,
            formatted_amount=format_units(raw_amount, token.decimals),
            address=token.address,
            chain_id=token.chain_id,
            decimals=token.decimals,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def _call(self, method: str, params: list):
        response = self._session.post(
            self._config.rpc_url,
            json={"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params},
            timeout=self._config.timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            raise RpcError(payload["error"].get("message", str(payload["error"])))
        return payload.get("result")
