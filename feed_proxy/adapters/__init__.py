"""Adapters for state and I/O owned by the proxy core."""
