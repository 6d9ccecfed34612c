"""Cooperative cancellation signal passed to request methods."""

import threading

from restbind.errors import RequestCancelledError


class CancellationToken:
    """A flag one thread sets and the engine checks around the network call.

    A request method receives it as a parameter annotated
    ``CancellationToken``; no declaration is needed.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError("request was cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
