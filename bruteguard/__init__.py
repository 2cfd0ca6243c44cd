"""Brute-force protection: growing delays after free retries, tracked per client and key."""

from .delays import compute_delays, default_lifetime
from .errors import ConfigError, StoreError
from .failures import fail_forbidden, fail_mark, fail_too_many_requests
from .guard import BruteGuard, Guard, ResetHandle, make_key
from .schemas import AttemptRecord, ThrottleConfig
from .store import MemoryStore, StoreAdapter

__all__ = [
    "AttemptRecord",
    "BruteGuard",
    "ConfigError",
    "Guard",
    "MemoryStore",
    "ResetHandle",
    "StoreAdapter",
    "StoreError",
    "ThrottleConfig",
    "compute_delays",
    "default_lifetime",
    "fail_forbidden",
    "fail_mark",
    "fail_too_many_requests",
    "make_key",
]
