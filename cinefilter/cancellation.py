from __future__ import annotations

from threading import Event


class SearchCancelled(Exception):
    """
    Raised at a suspension point once the controlling scope has been cancelled.

    Not an error: callers swallow it silently and publish nothing further.
    """


class CancellationScope:
    """
    Cancellation token shared by reference with every call made on behalf of one search.

    `cancel()` may be called from any thread and is idempotent.
    """

    def __init__(self) -> None:
        self._event = Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SearchCancelled()


def check_scope(scope: CancellationScope | None) -> None:
    if scope is not None:
        scope.raise_if_cancelled()
