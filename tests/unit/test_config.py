"""Tests for configuration loading and validation."""

import pytest
import yaml

from rebalancer.config import (
    AppConfig,
    Secrets,
    load_config,
    resolve_wallet_address,
)

LOGGING = {
    "trade_log": "t.log",
    "decision_log": "d.log",
    "app_log": "a.log",
}


class TestAppConfig:
    def test_valid_config(self, test_config):
        """A valid config should load without errors."""
        assert test_config.chain.chain_id == 1666600000
        assert test_config.rebalancing.tolerance_pct == 0.01
        assert test_config.rebalancing.track_buyer_fill is False
        assert test_config.prices.coin_ids["1WBTC"] == "bitcoin"
        assert test_config.tokens.supported_symbols == ["ONE", "1USDT", "1WBTC"]
        assert test_config.providers.swaps == "paper"

    def test_defaults(self):
        config = AppConfig(logging=LOGGING)
        assert config.trading.dry_run is True
        assert config.tokens.ttl_seconds == 300
        assert config.prices.refresh_interval_seconds == 120
        assert config.rebalancing.targets == {}

    def test_logging_required(self):
        with pytest.raises(ValueError):
            AppConfig()

    def test_target_range(self):
        """Each configured target must be 0-100."""
        with pytest.raises(ValueError, match="between 0 and 100"):
            AppConfig(logging=LOGGING, rebalancing={"targets": {"ONE": 120}})

    def test_tolerance_must_be_positive(self):
        with pytest.raises(ValueError):
            AppConfig(logging=LOGGING, rebalancing={"tolerance_pct": 0})

    def test_refresh_interval_floor(self):
        with pytest.raises(ValueError):
            AppConfig(logging=LOGGING, prices={"refresh_interval_seconds": 1})

    def test_load_config_from_yaml(self, tmp_path):
        """load_config should parse a YAML file correctly."""
        config_data = {
            "chain": {"chain_id": 1666700000, "rpc_url": "https://api.s0.b.hmny.io"},
            "rebalancing": {
                "track_buyer_fill": True,
                "targets": {"ONE": 50, "1USDT": 50},
            },
            "trading": {"dry_run": False},
            "logging": {
                "level": "DEBUG",
                "trade_log": "logs/trades.log",
                "decision_log": "logs/decisions.log",
                "app_log": "logs/app.log",
            },
        }

        config_file = tmp_path / "settings.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        config = load_config(config_file)
        assert config.chain.chain_id == 1666700000
        assert config.rebalancing.track_buyer_fill is True
        assert config.rebalancing.targets == {"ONE": 50, "1USDT": 50}
        assert config.trading.dry_run is False
        assert config.logging.level == "DEBUG"


class TestResolveWalletAddress:
    def test_secret_takes_precedence(self, test_config, mock_secrets):
        assert resolve_wallet_address(test_config, mock_secrets) == mock_secrets.wallet_address

    def test_falls_back_to_config(self, test_config):
        secrets = Secrets(wallet_address="")
        assert resolve_wallet_address(test_config, secrets) == test_config.wallet.address

    def test_missing_address_raises(self):
        config = AppConfig(logging=LOGGING)
        with pytest.raises(ValueError, match="No wallet address configured"):
            resolve_wallet_address(config, Secrets(wallet_address=""))
