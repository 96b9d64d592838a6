"""Cancellation signal shared between a caller and an in-flight request."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List

from resilient_fetch.errors import CancellationError

logger = logging.getLogger(__name__)


class CancelToken:
    """Thread-safe, one-shot cancellation flag.

    A caller keeps the token and calls :meth:`cancel` from any thread; the
    engine and transport observe it between steps and through callbacks.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.exception("Cancel callback failed")

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` to run on cancel and return an unregister function.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def raise_if_cancelled(self, message: str = "Request cancelled", **details) -> None:
        if self._event.is_set():
            raise CancellationError(message, **details)
