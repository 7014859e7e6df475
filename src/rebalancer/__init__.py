"""Target-allocation rebalancer for on-chain token portfolios."""

__version__ = "0.1.0"
