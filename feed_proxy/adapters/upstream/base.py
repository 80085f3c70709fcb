from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class UpstreamResponse:
    """Decoded upstream response.

    Attributes:
        status: HTTP status code returned by the upstream.
        data: Decoded body (JSON value, text, or None when empty).
        headers: Response headers, kept for logging and retry decisions.
    """

    status: int
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)


class AbstractUpstreamClient(ABC):
    """Interface for clients that send GET requests to the upstream mirror."""

    @abstractmethod
    async def fetch(
        self,
        path: str,
        *,
        params: Mapping[str, str | None] | None = None,
        request_id: str | None = None,
    ) -> UpstreamResponse:
        """Send a GET request for ``path`` and return the decoded response.

        Any HTTP status (including 4xx/5xx) is returned, not raised.

        Args:
            path: Path relative to the upstream base URL.
            params: Optional query parameters; None values are omitted.
            request_id: Correlation id used for logging only.

        Returns:
            UpstreamResponse: Status, decoded body and headers.

        Raises:
            httpx.HTTPError: On transport/library-level failure.
        """
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
