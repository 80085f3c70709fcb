"""Application-level exception types.

Steady-state request handling never raises across the proxy core: lookups
always resolve to a status/body result. These errors cover wiring and
lifecycle failures (bad configuration, using the dispatcher before it is
started) and give the HTTP layer a consistent error envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict

class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    setting: str
    request_id: str
    context: NotRequired[dict[str, Any]]

@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

class ConfigurationAppError(AppError):
    """Raised when required configuration is missing or invalid."""

class DispatcherNotRunningError(AppError):
    """Raised when work is submitted to a dispatcher that is not started."""
