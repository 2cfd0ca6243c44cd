"""
Attempt throttling engine.

BruteGuard decides whether an attempt for a key may proceed, based on how many
allowed attempts the key has made and when the last one happened. Allowed attempts
are counted in the store; denied attempts go to the failure policy and are not
counted. Guard is the per-route gate (usable as a FastAPI dependency) and
ResetHandle lets a handler clear every key the current request was checked against,
e.g. after a successful login.
"""
import asyncio
import hashlib
import inspect
import itertools
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import Response

from bruteguard import metrics
from bruteguard.client_ip import get_client_ip
from bruteguard.delays import clamped_index, compute_delays, default_lifetime
from bruteguard.errors import ConfigError, StoreError
from bruteguard.schemas import AttemptRecord, ThrottleConfig
from bruteguard.store import StoreAdapter

logger = logging.getLogger("bruteguard")
audit = logging.getLogger("bruteguard.audit")

# Options that shape the schedule; fixed per engine, not per guard
_ENGINE_ONLY_OPTIONS = frozenset({"free_retries", "min_wait", "max_wait", "lifetime"})

_instance_ids = itertools.count(1)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def make_key(*parts: str | None) -> str:
    """Store key for the given parts (hashed so arbitrary sub-keys are safe for any backend)."""
    raw = "\x00".join("" if p is None else str(p) for p in parts)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ResetHandle:
    """
    Keys checked while handling one request, each with the engine and gate config that checked it.
    reset() clears all of them; an entry stays on the handle until its reset succeeds.
    """

    def __init__(self) -> None:
        self._entries: list[tuple["BruteGuard", ThrottleConfig, str, str | None]] = []

    def add(self, engine: "BruteGuard", config: ThrottleConfig, key: str, ip: str | None) -> None:
        if not any(e is engine and k == key for e, _, k, _ in self._entries):
            self._entries.append((engine, config, key, ip))

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self, callback: Callable[[], Any] | None = None) -> asyncio.Task:
        """Schedule the reset; callback runs after every key is cleared, never before this returns."""
        return asyncio.get_running_loop().create_task(self._reset_all(callback))

    async def _reset_all(self, callback) -> Any:
        failed: list[tuple["BruteGuard", ThrottleConfig, StoreError]] = []
        for entry in list(self._entries):
            engine, config, key, ip = entry
            try:
                await engine.store.reset(key)
            except Exception as e:
                error = StoreError("Cannot reset request count", operation="reset", key=key, parent=e, ip=ip)
                failed.append((engine, config, error))
                continue
            self._entries.remove(entry)
            metrics.record_decision("reset")
        audit.info("action=reset source=request failed=%s remaining=%s", len(failed), len(self._entries))
        # Handlers run only after every entry was attempted; the default handler raises
        for engine, config, error in failed:
            await engine._store_failed(config, error)
        if failed:
            return None
        if callback is not None:
            return await _maybe_await(callback())
        return None


class Guard:
    """
    Gate for one protected operation: base engine config plus per-guard overrides
    (sub-key, ignore_ip, failure_policy, ...). Calling it derives the client IP and
    sub-key from the request and delegates to BruteGuard.check.
    """

    def __init__(self, engine: "BruteGuard", config: ThrottleConfig):
        self.engine = engine
        self.config = config

    async def __call__(self, request: Request, response: Response, continuation=None) -> Any:
        ip = get_client_ip(request, self.config.proxy_depth)
        key = await self._resolve_key(request)
        return await self.engine.check(ip, key, request, response, continuation, config=self.config)

    async def dependency(self, request: Request, response: Response) -> None:
        """FastAPI dependency: returns when allowed, raises HTTPException when denied."""
        await self(request, response)

    async def _resolve_key(self, request: Request) -> str | None:
        key = self.config.key
        if callable(key):
            return await _maybe_await(key(request))
        return key


class BruteGuard:
    """
    Throttling engine over a StoreAdapter.

    After free_retries allowed attempts, each further attempt for the same key must
    wait delays[i] ms after the previous allowed attempt, where i grows with the
    attempt count and is capped at the last (max_wait) entry.
    """

    def __init__(self, store: StoreAdapter, config: ThrottleConfig | None = None, **options: Any):
        try:
            if config is None:
                config = ThrottleConfig.from_settings(**options)
            elif options:
                config = config.merged(**options)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

        self.store = store
        self.name = f"brute{next(_instance_ids)}"
        self.delays = compute_delays(config.free_retries, config.min_wait, config.max_wait)
        if not config.lifetime:
            config = config.merged(lifetime=default_lifetime(config.free_retries, self.delays, config.max_wait))
        self.config = config
        self._default_guard = Guard(self, self.config)
        logger.debug(
            "engine=%s free_retries=%s delays=%s lifetime=%s",
            self.name,
            config.free_retries,
            list(self.delays),
            config.lifetime,
        )

    def now(self) -> datetime:
        return datetime.now(UTC)

    def make_store_key(self, ip: str | None, key: str | None, *, ignore_ip: bool = False) -> str:
        if ignore_ip:
            return make_key(self.name, key)
        return make_key(ip, self.name, key)

    def get_guard(self, **overrides: Any) -> Guard:
        """Gate with overrides merged over this engine's config (which is not modified)."""
        fixed = _ENGINE_ONLY_OPTIONS.intersection(overrides)
        if fixed:
            raise ConfigError(f"cannot override per guard: {', '.join(sorted(fixed))}")
        try:
            return Guard(self, self.config.merged(**overrides))
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    async def prevent(self, request: Request, response: Response, continuation=None) -> Any:
        """Gate with the base config."""
        return await self._default_guard(request, response, continuation)

    async def check(
        self,
        ip: str | None,
        key: str | None,
        request: Any,
        response: Any,
        continuation: Callable[[], Any] | None = None,
        *,
        config: ThrottleConfig | None = None,
    ) -> Any:
        """
        Count an attempt for (ip, key) or deny it.

        Allowed: record is updated, then continuation is called and its result returned.
        Denied: failure_policy(request, response, continuation, next_valid_request_time)
        is called and its result returned; nothing is written.
        Store failure: handle_store_error(StoreError) is called and its result returned.
        """
        config = config or self.config
        store_key = self.make_store_key(ip, key, ignore_ip=config.ignore_ip)
        if config.attach_reset_to_request:
            self._attach_reset_handle(request, config, store_key, ip)

        try:
            record = await self.store.get(store_key)
        except Exception as e:
            return await self._store_failed(
                config,
                StoreError(
                    "Cannot get request count",
                    operation="get",
                    key=store_key,
                    parent=e,
                    ip=ip,
                    request=request,
                    response=response,
                    continuation=continuation,
                ),
            )

        now = self.now()
        lifetime = config.lifetime or 0
        count = 0
        last_request = now
        if record is not None and (not lifetime or (now - record.last_request).total_seconds() < lifetime):
            count = record.count
            last_request = record.last_request

        next_valid_request_time = now
        if count > config.free_retries:
            delay = self.delays[clamped_index(count, config.free_retries, len(self.delays))]
            next_valid_request_time = last_request + timedelta(milliseconds=delay)

        if count > config.free_retries and now < next_valid_request_time:
            metrics.record_decision("denied")
            audit.info(
                "action=throttle engine=%s ip=%s key=%s count=%s next_valid=%s",
                self.name,
                ip,
                key,
                count,
                next_valid_request_time.isoformat(),
            )
            return await _maybe_await(config.failure_policy(request, response, continuation, next_valid_request_time))

        store_lifetime = lifetime
        if config.refresh_timeout_on_request or count == 0:
            last_request = now
        elif lifetime:
            # last_request is still the first attempt; expiry stays anchored to it
            store_lifetime = max(lifetime - (now - last_request).total_seconds(), 0.001)
        updated = AttemptRecord(count=count + 1, last_request=last_request)
        try:
            await self.store.set(store_key, updated, store_lifetime)
        except Exception as e:
            return await self._store_failed(
                config,
                StoreError(
                    "Cannot increment request count",
                    operation="set",
                    key=store_key,
                    parent=e,
                    ip=ip,
                    request=request,
                    response=response,
                    continuation=continuation,
                ),
            )

        metrics.record_decision("allowed")
        logger.debug("action=allow engine=%s ip=%s key=%s count=%s", self.name, ip, key, updated.count)
        if continuation is None:
            return None
        return await _maybe_await(continuation())

    def reset(self, ip: str | None, key: str | None = None, callback: Callable[[], Any] | None = None) -> asyncio.Task:
        """
        Clear the record for (ip, key); ip=None addresses keys of ignore_ip guards.
        Returns the scheduled task; callback runs once the store confirms, never before this returns.
        """
        store_key = self.make_store_key(ip, key, ignore_ip=ip is None)
        return asyncio.get_running_loop().create_task(self._reset(store_key, ip, callback))

    async def _reset(self, store_key: str, ip: str | None, callback) -> Any:
        try:
            await self.store.reset(store_key)
        except Exception as e:
            return await self._store_failed(
                self.config,
                StoreError("Cannot reset request count", operation="reset", key=store_key, parent=e, ip=ip),
            )
        metrics.record_decision("reset")
        audit.info("action=reset engine=%s ip=%s", self.name, ip)
        if callback is not None:
            return await _maybe_await(callback())
        return None

    async def _store_failed(self, config: ThrottleConfig, error: StoreError) -> Any:
        metrics.record_decision("store_error")
        logger.warning(
            "action=store_error engine=%s operation=%s key=%s: %s",
            self.name,
            error.operation,
            error.key,
            error.parent,
        )
        return await _maybe_await(config.handle_store_error(error))

    def _attach_reset_handle(self, request: Any, config: ThrottleConfig, store_key: str, ip: str | None) -> None:
        state = getattr(request, "state", None)
        if state is None:
            logger.debug("action=attach_reset skipped=no_state engine=%s ip=%s", self.name, ip)
            return
        handle = getattr(state, "brute", None)
        if handle is None:
            handle = ResetHandle()
            state.brute = handle
        handle.add(self, config, store_key, ip)
