"""
Throttle configuration and the per-key attempt record persisted in the store.
"""
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bruteguard.errors import raise_store_error
from bruteguard.failures import fail_too_many_requests
from bruteguard.settings import settings


class ThrottleConfig(BaseModel):
    """Immutable engine configuration. Waits are milliseconds, lifetime is seconds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    free_retries: int = Field(2, ge=0)
    min_wait: int = Field(500, gt=0)
    max_wait: int = Field(1000 * 60 * 15, gt=0)
    lifetime: float | None = Field(None, ge=0, description="0 or None = derived from the schedule")
    refresh_timeout_on_request: bool = True
    attach_reset_to_request: bool = True
    proxy_depth: int = Field(0, ge=0)
    failure_policy: Callable[..., Any] = fail_too_many_requests
    handle_store_error: Callable[..., Any] = raise_store_error

    # Per-gate overlay: sub-key (string, or callable of the request) and whether the client IP is part of the key
    key: str | Callable[..., Any] | None = None
    ignore_ip: bool = False

    @model_validator(mode="after")
    def _check_waits(self) -> "ThrottleConfig":
        if self.max_wait < self.min_wait:
            raise ValueError(f"max_wait ({self.max_wait}) must be >= min_wait ({self.min_wait})")
        return self

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ThrottleConfig":
        values: dict[str, Any] = {
            "free_retries": settings.BRUTE_FREE_RETRIES,
            "min_wait": settings.BRUTE_MIN_WAIT_MS,
            "max_wait": settings.BRUTE_MAX_WAIT_MS,
            "lifetime": settings.BRUTE_LIFETIME_SECONDS,
            "refresh_timeout_on_request": settings.BRUTE_REFRESH_TIMEOUT_ON_REQUEST,
            "attach_reset_to_request": settings.BRUTE_ATTACH_RESET_TO_REQUEST,
            "proxy_depth": settings.BRUTE_PROXY_DEPTH,
        }
        values.update(overrides)
        return cls.model_validate(values)

    def merged(self, **overrides: Any) -> "ThrottleConfig":
        """New config with overrides applied; self is left untouched."""
        return type(self).model_validate({**dict(self), **overrides})


class AttemptRecord(BaseModel):
    """
    Stored per key. count only grows on allowed attempts.
    last_request advances on every allowed attempt when the timeout is refreshed on request;
    otherwise it stays at the first attempt and anchors both delays and expiry.
    """

    count: int = Field(0, ge=0)
    last_request: datetime
