"""Upstream quota guards.

The dispatcher depends on the abstract guard so the in-memory counter can
later be swapped for a shared store without touching the dispatch loop.
"""

from feed_proxy.adapters.quota.base import AbstractQuotaGuard, QuotaSnapshot
from feed_proxy.adapters.quota.in_memory import InMemoryQuotaGuard, build_quota_limit

__all__ = [
    "AbstractQuotaGuard",
    "InMemoryQuotaGuard",
    "QuotaSnapshot",
    "build_quota_limit",
]
