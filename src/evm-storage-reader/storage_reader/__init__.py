"""Decode EVM contract storage from a compiler storage layout."""
