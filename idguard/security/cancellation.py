"""Cooperative cancellation for multi-step command sequences."""

import logging
import threading
from typing import Callable, List

from idguard.errors import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag polled between pipeline stages.

    Cancelling never kills a process that is already running; the command
    timeout is the only forced-termination path.
    """

    def __init__(self):
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for callback in self._callbacks:
            try:
                callback()
            except Exception as e:  # noqa: BLE001 - one bad callback must not block others
                logger.warning(f"Cancellation callback failed: {e}")

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        if self._event.is_set():
            callback()
            return
        self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")
