"""Pydantic schemas for upstream jobs and their results."""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Job(BaseModel):
    """One unit of upstream work, consumed exactly once by the dispatcher.

    Jobs are immutable once built: query parameters are stored as a tuple
    of ``(name, value)`` pairs, so nothing can edit them after submission.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(
        None,
        description="Correlation id of the request that caused this job (tracing only).",
    )
    path: str = Field(
        ...,
        description="Upstream path relative to the configured base URL, e.g. /api/tweet/1.",
    )
    params: tuple[tuple[str, str], ...] | None = Field(
        None,
        description="Optional query parameters as (name, value) pairs; a mapping is accepted on input.",
    )

    @field_validator("params", mode="before")
    @classmethod
    def _freeze_params(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return tuple(value.items())
        return value

    @property
    def query(self) -> dict[str, str] | None:
        """Query parameters as a fresh dict for the upstream client."""
        return dict(self.params) if self.params is not None else None


class JobResult(BaseModel):
    """Outcome of a job: an upstream response or a locally produced status.

    ``data`` is the upstream body (decoded JSON, text, or None). Local
    rejections (quota exhausted, transport failure, shutdown) carry no body.
    """

    model_config = ConfigDict(frozen=True)

    status: int = Field(..., description="HTTP status to return to the caller.")
    data: Any = Field(None, description="Opaque upstream payload.")

    @property
    def ok(self) -> bool:
        return self.status == 200

    @property
    def not_found(self) -> bool:
        return self.status == 404
