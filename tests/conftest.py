"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest

from rebalancer.config import AppConfig, Secrets
from rebalancer.models import Asset, AssetBalance
from rebalancer.rebalancing.analyzer import annotate
from rebalancer.rebalancing.executor import SwapExecutor
from rebalancer.rebalancing.ledger import TransactionLedger
from rebalancer.rebalancing.session import RebalanceSession
from rebalancer.sources.prices import PriceBook
from rebalancer.trading.paper import PaperSwapProvider


@pytest.fixture
def test_config() -> AppConfig:
    """Provide a test configuration with safe defaults."""
    return AppConfig(
        wallet={"address": "0x1111111111111111111111111111111111111111"},
        rebalancing={
            "tolerance_pct": 0.01,
            "stablecoins": ["1USDT"],
            "targets": {"ONE": 40, "1USDT": 30, "1WBTC": 30},
        },
        trading={"dry_run": True},
        logging={
            "level": "DEBUG",
            "app_log": "/tmp/test_rebalancer.log",
            "trade_log": "/tmp/test_trades.log",
            "decision_log": "/tmp/test_decisions.log",
        },
    )


@pytest.fixture
def mock_secrets() -> Secrets:
    """Provide fake keys for unit tests."""
    return Secrets(
        coingecko_api_key="test-coingecko-key",
        wallet_address="0x2222222222222222222222222222222222222222",
    )


def _balance(symbol: str, amount: float, decimals: int = 18) -> AssetBalance:
    return AssetBalance(
        symbol=symbol,
        raw_amount=int(amount * 10**decimals),
        formatted_amount=amount,
        decimals=decimals,
    )


def _assets(holdings: list[tuple[str, float, float, float | None]]) -> list[Asset]:
    """Build an annotated snapshot from (symbol, amount, price, target) rows."""
    balances = [_balance(symbol, amount) for symbol, amount, _, _ in holdings]
    prices = {symbol: price for symbol, _, price, _ in holdings if price}
    targets = {symbol: target for symbol, _, _, target in holdings if target is not None}
    return annotate(balances, prices, targets)


@pytest.fixture
def wallet_balances() -> list[AssetBalance]:
    """ONE $600, 1USDT $300, 1WBTC $100 at the prices fixture."""
    return [
        _balance("ONE", 30000),
        _balance("1USDT", 300, decimals=6),
        _balance("1WBTC", 0.002, decimals=8),
    ]


@pytest.fixture
def wallet_prices() -> dict[str, float]:
    return {"ONE": 0.02, "1USDT": 1.0, "1WBTC": 50000.0}


@pytest.fixture
def session_parts(wallet_balances, wallet_prices, test_config):
    """Session wired to mocked sources and a paper swap provider."""
    balance_source = MagicMock()
    balance_source.get_all_balances.return_value = wallet_balances
    price_source = MagicMock()
    price_source.get_prices.return_value = wallet_prices

    ledger = TransactionLedger()
    provider = PaperSwapProvider()
    executor = SwapExecutor(provider, ledger, stablecoins=test_config.rebalancing.stablecoins)
    session = RebalanceSession(
        balance_source,
        PriceBook(price_source, symbols=[]),
        executor,
        ledger,
        test_config.rebalancing,
    )
    return session, balance_source, price_source, provider


@pytest.fixture
def make_assets():
    """Factory: (symbol, amount, price, target) rows -> annotated snapshot."""
    return _assets
