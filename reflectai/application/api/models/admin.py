"""
Admin API Response Models

Response shapes for the operational endpoints: circuit breaker states,
provider availability, cache and rate limiter statistics, and the results
of the reset/clear operations.
"""

from typing import Any

from pydantic import BaseModel, Field


class BreakerStatus(BaseModel):
    """
    Snapshot of one circuit breaker.

    ``state`` is reported lazily: an OPEN breaker whose reset timeout has
    elapsed still reads OPEN until the next call probes it.
    """

    name: str = Field(..., description="Breaker name (the provider name)")
    state: str = Field(..., description="CLOSED, OPEN or HALF_OPEN")
    failure_count: int = Field(..., ge=0, description="Failures since the last reset")
    success_count: int = Field(..., ge=0, description="Successes in the current half-open probe")
    request_count: int = Field(..., ge=0, description="Calls since the last reset")
    seconds_since_state_change: float = Field(..., ge=0, description="Age of the current state")
    open_duration: float | None = Field(default=None, description="Seconds spent OPEN so far")
    last_error: dict[str, Any] | None = Field(default=None, description="Last recorded failure")
    error_counts: dict[str, int] = Field(default_factory=dict, description="Failures per category")
    config: dict[str, Any] = Field(default_factory=dict, description="Breaker thresholds")


class ProviderStatus(BaseModel):
    name: str
    available: bool
    registered: bool
    circuit_state: str
    models: list[str]
    default_model: str


class StatusResponse(BaseModel):
    breakers: dict[str, BreakerStatus] = Field(default_factory=dict)
    providers: list[ProviderStatus] = Field(default_factory=list)
    cache: dict[str, Any] = Field(default_factory=dict, description="Response cache statistics")
    rate_limiter: dict[str, Any] = Field(default_factory=dict, description="Rate limiter statistics")
    shared_store: dict[str, bool] = Field(
        default_factory=dict, description="Whether each namespace currently reaches Redis"
    )


class BreakerResetResponse(BaseModel):
    reset: list[str] = Field(default_factory=list, description="Breakers that were reset")
    count: int = Field(..., ge=0)


class BreakerTripResponse(BaseModel):
    name: str
    state: str


class ClearResponse(BaseModel):
    cleared: str = Field(..., description="What was cleared")
    success: bool = True
