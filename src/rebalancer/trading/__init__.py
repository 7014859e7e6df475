"""Swap providers."""
