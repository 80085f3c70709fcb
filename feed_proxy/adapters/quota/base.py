"""Quota guard interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class QuotaSnapshot:
    """Point-in-time view of the quota counter.

    Attributes:
        count: Requests recorded in the current window.
        limit: Requests allowed per window before checks fail.
        remaining: Requests left before checks fail (0 when exhausted).
        tripped: Whether the guard was saturated by a transport failure.
        window_seconds: Length of the window between resets.
        resets_in_seconds: Time until the next scheduled reset.
    """

    count: int
    limit: int
    remaining: int
    tripped: bool
    window_seconds: float
    resets_in_seconds: float


class AbstractQuotaGuard(ABC):
    """Interface for the account-level upstream request budget."""

    @abstractmethod
    def check(self) -> bool:
        """Return True when another request may be sent upstream."""
        raise NotImplementedError

    @abstractmethod
    def record(self) -> None:
        """Count one request actually sent upstream."""
        raise NotImplementedError

    @abstractmethod
    def trip(self) -> None:
        """Saturate the counter so every check fails until the next reset."""
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Start a new window with a zeroed counter."""
        raise NotImplementedError

    @abstractmethod
    def snapshot(self) -> QuotaSnapshot:
        raise NotImplementedError

    async def start(self) -> None:
        """Begin periodic resets. No-op for guards without a timer."""

    async def stop(self) -> None:
        """Cancel periodic resets. No-op for guards without a timer."""
