"""Exceptions raised by restbind."""

from typing import Any


class RestBindError(Exception):
    """Base class for every restbind error."""


class InvalidDeclarationError(RestBindError):
    """An interface (or one of its members) failed validation."""

    def __init__(self, message: str, diagnostics: list | None = None):
        self.diagnostics = list(diagnostics or [])
        details = "\n".join(f"  {d.format()}" for d in self.diagnostics)
        super().__init__(f"{message}\n{details}" if details else message)


class InvalidArgumentError(RestBindError, ValueError):
    """An argument broke a contract the declaration requires at call time."""


class RequestCancelledError(RestBindError):
    pass


class ApiError(RestBindError):
    """Non-2xx response from the remote API."""

    def __init__(
        self,
        method: str,
        url: str,
        status_code: int,
        reason: str | None = None,
        content: str | None = None,
        headers: dict[str, Any] | None = None,
    ):
        self.method = method
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.content = content
        self.headers = dict(headers or {})
        super().__init__(f"{method} {url} failed: {status_code} {reason or ''}".rstrip())
