"""Configuration loading and validation using Pydantic."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

HARMONY_MAINNET_CHAIN_ID = 1666600000
TOKEN_LIST_URL = "https://raw.githubusercontent.com/harmony-one/swap-token-list/main/tokenlist.json"
COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"


class ChainConfig(BaseModel):
    chain_id: int = HARMONY_MAINNET_CHAIN_ID
    rpc_url: str = "https://api.harmony.one"
    timeout_seconds: float = Field(default=10.0, gt=0)


class WalletConfig(BaseModel):
    address: str = ""


class TokensConfig(BaseModel):
    """Token list source and the symbols the rebalancer manages."""

    token_list_url: str = TOKEN_LIST_URL
    ttl_seconds: int = Field(default=300, ge=0)
    timeout_seconds: float = Field(default=10.0, gt=0)
    supported_symbols: list[str] = Field(default_factory=lambda: ["ONE", "1USDT", "1WBTC"])
    native_symbol: str = "ONE"
    native_decimals: int = Field(default=18, ge=0)


class PricesConfig(BaseModel):
    base_url: str = COINGECKO_PRICE_URL
    refresh_interval_seconds: int = Field(default=120, ge=10)
    timeout_seconds: float = Field(default=10.0, gt=0)
    change_threshold: float = Field(default=0.001, ge=0)
    coin_ids: dict[str, str] = Field(
        default_factory=lambda: {
            "ONE": "harmony",
            "USDT": "tether",
            "1USDT": "tether",
            "BTC": "bitcoin",
            "1WBTC": "bitcoin",
        }
    )


class RebalancingConfig(BaseModel):
    """Configuration for target-allocation rebalancing."""

    tolerance_pct: float = Field(default=0.01, gt=0, le=1)
    track_buyer_fill: bool = False
    stablecoins: list[str] = Field(default_factory=lambda: ["USDT", "1USDT", "USDC", "1USDC"])
    targets: dict[str, float] = Field(default_factory=dict)

    @field_validator("targets")
    @classmethod
    def targets_in_range(cls, v):
        for symbol, target in v.items():
            if not 0 <= target <= 100:
                raise ValueError(f"target for {symbol} must be between 0 and 100, got {target}")
        return v


class TradingConfig(BaseModel):
    dry_run: bool = True


class ProvidersConfig(BaseModel):
    balances: str = "rpc"
    prices: str = "coingecko"
    swaps: str = "paper"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    app_log: str
    trade_log: str
    decision_log: str
    max_bytes: int = 10485760
    backup_count: int = 5


class AppConfig(BaseModel):
    chain: ChainConfig = Field(default_factory=ChainConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    tokens: TokensConfig = Field(default_factory=TokensConfig)
    prices: PricesConfig = Field(default_factory=PricesConfig)
    rebalancing: RebalancingConfig = Field(default_factory=RebalancingConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    logging: LoggingConfig


class Secrets(BaseSettings):
    """Loaded from .env file automatically."""

    coingecko_api_key: str = ""
    wallet_address: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def load_config(config_path: Path = Path("config/settings.yaml")) -> AppConfig:
    """Load and validate application configuration from YAML."""
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return AppConfig(**raw)


def resolve_wallet_address(config: AppConfig, secrets: Secrets) -> str:
    """Resolve the wallet whose balances are rebalanced.

    Priority:
    1. WALLET_ADDRESS from the environment or .env (via Secrets)
    2. wallet.address from config

    Raises:
        ValueError: If no address is configured anywhere
    """
    address = secrets.wallet_address or config.wallet.address
    if not address:
        raise ValueError(
            "No wallet address configured. Set WALLET_ADDRESS in .env "
            "or wallet.address in config/settings.yaml."
        )
    return address
