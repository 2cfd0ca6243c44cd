"""Errors raised by the throttling engine. A denial is not an error."""
from typing import Any


class ConfigError(ValueError):
    """Invalid free_retries / min_wait / max_wait combination."""


class StoreError(Exception):
    """
    A store operation (get, set or reset) failed.

    Always handed to the configured handle_store_error callback, never to the
    failure policy or the continuation. The underlying exception is kept in
    ``parent`` (and chained as ``__cause__`` when re-raised).
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        key: str,
        parent: BaseException,
        ip: str | None = None,
        request: Any = None,
        response: Any = None,
        continuation: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.key = key
        self.parent = parent
        self.ip = ip
        self.request = request
        self.response = response
        self.continuation = continuation
        self.__cause__ = parent

    def __repr__(self) -> str:
        return f"StoreError(operation={self.operation!r}, key={self.key!r}, parent={self.parent!r})"


def raise_store_error(error: StoreError) -> None:
    """Default handle_store_error: store failures are fatal."""
    raise error
