"""Verify connectivity to the chain RPC, token list and price API."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from rebalancer.config import AppConfig, Secrets, load_config, resolve_wallet_address
from rebalancer.providers import create_balance_source, create_price_source, create_token_source


def check_token_list(config: AppConfig) -> bool:
    """Verify the token list is reachable and has the supported tokens."""
    print("Checking token list...")
    try:
        tokens = create_token_source(config).supported(config.chain.chain_id)
        print(f"  Supported tokens on chain {config.chain.chain_id}: {[t.symbol for t in tokens]}")
        missing = set(config.tokens.supported_symbols) - {t.symbol for t in tokens}
        if missing:
            print(f"  Missing from token list: {sorted(missing)}")
        print("  Token list: OK")
        return True
    except Exception as e:
        print(f"  Token list: FAILED - {e}")
        return False


def check_rpc(config: AppConfig, secrets: Secrets) -> bool:
    """Verify balances can be read for the configured wallet."""
    print("\nChecking chain RPC...")
    try:
        address = resolve_wallet_address(config, secrets)
        balances = create_balance_source(config, create_token_source(config)).get_all_balances(address)
        for balance in balances:
            print(f"  {balance.symbol:<8} {balance.formatted_amount:,.6f}")
        print("  RPC: OK")
        return True
    except Exception as e:
        print(f"  RPC: FAILED - {e}")
        return False


def check_coingecko(config: AppConfig, secrets: Secrets) -> bool:
    """Verify USD prices are available for the supported tokens."""
    print("\nChecking CoinGecko API...")
    try:
        prices = create_price_source(config, secrets).get_prices(config.tokens.supported_symbols)
        for symbol, price in sorted(prices.items()):
            print(f"  {symbol:<8} ${price:,.4f}")
        print("  CoinGecko: OK")
        return True
    except Exception as e:
        print(f"  CoinGecko: FAILED - {e}")
        return False


def main():
    print("=" * 50)
    print("Rebalancer - Connectivity Check")
    print("=" * 50)

    config = load_config()
    try:
        secrets = Secrets()
    except Exception as e:
        print(f"\nFailed to load .env file: {e}")
        print("Make sure .env exists with WALLET_ADDRESS (and optionally COINGECKO_API_KEY)")
        sys.exit(1)

    results = [
        check_token_list(config),
        check_rpc(config, secrets),
        check_coingecko(config, secrets),
    ]

    print("\n" + "=" * 50)
    if all(results):
        print("All checks passed. Ready to rebalance.")
    else:
        print("Some checks failed. Fix the issues above.")
        sys.exit(1)


if __name__ == "__main__":
    main()
