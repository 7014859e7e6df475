"""Provider factory - creates the right implementation based on config."""

import importlib

from rebalancer.config import AppConfig, Secrets
from rebalancer.sources.base import BalanceSource, PriceSource, TokenSource
from rebalancer.sources.tokens import TokenListRepository
from rebalancer.trading.base import SwapProvider

PRICE_PROVIDERS = {
    "coingecko": "rebalancer.sources.prices:CoinGeckoPriceSource",
}

BALANCE_PROVIDERS = {
    "rpc": "rebalancer.sources.balances:RpcBalanceSource",
}

SWAP_PROVIDERS = {
    "paper": "rebalancer.trading.paper:PaperSwapProvider",
}


def _import_class(path: str):
    """Import a class from a 'module:ClassName' string."""
    module_path, class_name = path.split(":")
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def _lookup(kind: str, name: str, registry: dict[str, str]):
    if name not in registry:
        raise ValueError(
            f"Unknown {kind} provider: '{name}'. Available: {list(registry.keys())}"
        )
    return _import_class(registry[name])


def create_token_source(config: AppConfig) -> TokenSource:
    """Create the token list repository for the configured chain."""
    return TokenListRepository(config.tokens, native_chain_id=config.chain.chain_id)


def create_price_source(config: AppConfig, secrets: Secrets) -> PriceSource:
    """Create a price source based on config.providers.prices."""
    cls = _lookup("price", config.providers.prices, PRICE_PROVIDERS)
    return cls(config.prices, secrets)


def create_balance_source(config: AppConfig, tokens: TokenSource) -> BalanceSource:
    """Create a balance source based on config.providers.balances."""
    cls = _lookup("balance", config.providers.balances, BALANCE_PROVIDERS)
    return cls(config.chain, tokens)


def create_swap_provider(config: AppConfig) -> SwapProvider:
    """Create a swap provider based on config.providers.swaps."""
    cls = _lookup("swap", config.providers.swaps, SWAP_PROVIDERS)
    return cls()
