"""Shared fixtures: starlette requests built from raw ASGI scopes, a fresh MemoryStore per test."""
import pytest
from starlette.requests import Request

from bruteguard import MemoryStore
from bruteguard import metrics


def make_request(ip: str = "1.2.3.4", forwarded: str | None = None, headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if forwarded is not None:
        raw_headers.append((b"x-forwarded-for", forwarded.encode()))
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/login",
            "query_string": b"",
            "headers": raw_headers,
            "client": (ip, 50000),
        }
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture(autouse=True)
def _clear_metrics():
    metrics.clear()
    yield
    metrics.clear()
