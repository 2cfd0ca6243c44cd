"""
Failure policies: called when an attempt is throttled.

Signature: (request, response, continuation, next_valid_request_time). Policies may be
sync or async. The first two raise HTTPException so FastAPI renders the error body;
fail_mark lets the request through with the response marked.
"""
import inspect
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException

audit = logging.getLogger("bruteguard.audit")

TOO_MANY_REQUESTS_MESSAGE = "Too many requests in this time frame."


def _retry_after_seconds(next_valid_request_time: datetime) -> int:
    remaining = (next_valid_request_time - datetime.now(UTC)).total_seconds()
    return max(0, math.ceil(remaining))


def _error_detail(next_valid_request_time: datetime) -> dict[str, Any]:
    return {
        "error": {
            "text": TOO_MANY_REQUESTS_MESSAGE,
            "nextValidRequestDate": next_valid_request_time.isoformat(),
        }
    }


def fail_too_many_requests(request, response, continuation, next_valid_request_time: datetime) -> None:
    retry_after = _retry_after_seconds(next_valid_request_time)
    audit.info("action=deny status=429 retry_after=%s", retry_after)
    raise HTTPException(
        status_code=429,
        detail=_error_detail(next_valid_request_time),
        headers={"Retry-After": str(retry_after)},
    )


def fail_forbidden(request, response, continuation, next_valid_request_time: datetime) -> None:
    audit.info("action=deny status=403")
    raise HTTPException(status_code=403, detail=_error_detail(next_valid_request_time))


async def fail_mark(
    request,
    response,
    continuation: Callable[[], Any | Awaitable[Any]] | None,
    next_valid_request_time: datetime,
) -> Any:
    """Mark the response as 429 and carry on; the handler decides what to do."""
    response.status_code = 429
    response.next_valid_request_time = next_valid_request_time
    audit.info("action=mark status=429 next_valid=%s", next_valid_request_time.isoformat())
    if continuation is None:
        return None
    result = continuation()
    if inspect.isawaitable(result):
        result = await result
    return result
