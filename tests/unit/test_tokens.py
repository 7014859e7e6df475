"""Tests for the token list repository."""

from unittest.mock import MagicMock

import pytest
import requests

from rebalancer.config import HARMONY_MAINNET_CHAIN_ID, TokensConfig
from rebalancer.sources.base import SourceFetchError
from rebalancer.sources.tokens import NATIVE_TOKEN_ADDRESS, TokenListRepository

TESTNET_CHAIN_ID = 1666700000

TOKEN_LIST = {
    "name": "Harmony swap token list",
    "tokens": [
        {
            "chainId": HARMONY_MAINNET_CHAIN_ID,
            "address": "0x3C2B8Be99c50593081EAA2A724F0B8285F5aba8f",
            "symbol": "1USDT",
            "name": "Tether USD",
            "decimals": 6,
            "logoURI": "https://example.com/usdt.png",
        },
        {
            "chainId": HARMONY_MAINNET_CHAIN_ID,
            "address": "0x3095c7557bCb296ccc6e363DE01b760bA031F2d9",
            "symbol": "1WBTC",
            "name": "Wrapped BTC",
            "decimals": 8,
        },
        {
            "chainId": HARMONY_MAINNET_CHAIN_ID,
            "address": "0xcF664087a5bB0237a0BAd6742852ec6c8d69A27a",
            "symbol": "WONE",
            "name": "Wrapped ONE",
            "decimals": 18,
        },
        {
            "chainId": TESTNET_CHAIN_ID,
            "address": "0x0000000000000000000000000000000000000001",
            "symbol": "1USDT",
            "name": "Tether USD (testnet)",
            "decimals": 6,
        },
    ],
}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTokenListRepository:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def http(self):
        http = MagicMock()
        response = MagicMock()
        response.json.return_value = TOKEN_LIST
        http.get.return_value = response
        return http

    @pytest.fixture
    def repo(self, http, clock):
        return TokenListRepository(
            TokensConfig(ttl_seconds=300),
            native_chain_id=HARMONY_MAINNET_CHAIN_ID,
            session=http,
            clock=clock,
        )

    def test_get_filters_by_chain_and_adds_native(self, repo):
        tokens = repo.get(HARMONY_MAINNET_CHAIN_ID)

        assert [t.symbol for t in tokens] == ["1USDT", "1WBTC", "WONE", "ONE"]
        native = tokens[-1]
        assert native.address == NATIVE_TOKEN_ADDRESS
        assert native.decimals == 18
        assert tokens[0].logo_uri == "https://example.com/usdt.png"

    def test_other_chain(self, repo):
        tokens = repo.get(TESTNET_CHAIN_ID)
        assert [t.name for t in tokens] == ["Tether USD (testnet)"]

    def test_supported(self, repo):
        tokens = repo.supported(HARMONY_MAINNET_CHAIN_ID)
        assert [t.symbol for t in tokens] == ["1USDT", "1WBTC", "ONE"]

    def test_get_by_symbol_case_insensitive(self, repo):
        token = repo.get_by_symbol(HARMONY_MAINNET_CHAIN_ID, "1wbtc")
        assert token is not None
        assert token.decimals == 8
        assert repo.get_by_symbol(HARMONY_MAINNET_CHAIN_ID, "DOGE") is None

    def test_cached_within_ttl(self, repo, http, clock):
        repo.get(HARMONY_MAINNET_CHAIN_ID)
        clock.now += 299
        repo.supported(HARMONY_MAINNET_CHAIN_ID)

        assert http.get.call_count == 1
        assert not repo.is_stale()

    def test_refetched_after_ttl(self, repo, http, clock):
        repo.get(HARMONY_MAINNET_CHAIN_ID)
        clock.now += 301

        assert repo.is_stale()
        repo.get(HARMONY_MAINNET_CHAIN_ID)

        assert http.get.call_count == 2

    def test_invalidate_forces_refetch(self, repo, http):
        repo.get(HARMONY_MAINNET_CHAIN_ID)
        repo.invalidate()
        repo.get(HARMONY_MAINNET_CHAIN_ID)
        assert http.get.call_count == 2

    def test_stale_list_served_on_failure(self, repo, http, clock):
        repo.get(HARMONY_MAINNET_CHAIN_ID)
        clock.now += 301
        http.get.return_value.raise_for_status.side_effect = requests.HTTPError("503")

        tokens = repo.get(HARMONY_MAINNET_CHAIN_ID)

        assert len(tokens) == 4

    def test_failure_without_cache_raises(self, repo, http):
        http.get.return_value.raise_for_status.side_effect = requests.HTTPError("503")

        with pytest.raises(SourceFetchError, match="token list"):
            repo.get(HARMONY_MAINNET_CHAIN_ID)
