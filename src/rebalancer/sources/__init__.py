"""Balance, price and token-list sources."""
