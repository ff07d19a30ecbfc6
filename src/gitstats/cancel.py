from __future__ import annotations

import threading

from gitstats.errors import OperationCancelled


class CancelToken:
    """Caller-owned abort flag, checked by the pipeline between commits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()
