"""Cooperative cancellation token checked between streamed fragments."""

import logging
import threading

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe, one-way cancellation flag.

    Cancelling stops fragment delivery at the next check; it does not raise and
    does not interrupt a provider call that is already in progress.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Subsequent calls are no-ops."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.debug(f"Cancellation requested: {reason or 'no reason given'}")

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
