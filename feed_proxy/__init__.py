"""Caching, quota-aware reverse proxy for a social-feed mirror API."""

__version__ = "0.1.0"
