"""
Cooperative cancellation for long-running traversals.

A CancellationToken is passed down every recursive call of the engine.
Each step polls it and aborts with OperationCancelledError once cancel()
has been called, possibly from another thread:

    token = CancellationToken()
    threading.Timer(0.5, token.cancel).start()
    result = simplify(expr, token)
"""

import logging
import threading
from typing import Optional

from .errors import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A flag that can be raised once and polled by workers."""

    __slots__ = ('_event',)

    def __init__(self, cancelled: bool = False):
        self._event = threading.Event()
        if cancelled:
            self._event.set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_cancellation_requested(self) -> None:
        """Raise OperationCancelledError if cancel() has been called."""
        if self._event.is_set():
            logger.debug("cancellation observed")
            raise OperationCancelledError("operation was cancelled")

    def __repr__(self) -> str:
        state = "cancelled" if self._event.is_set() else "active"
        return f"CancellationToken({state})"

    @classmethod
    def cancelled(cls) -> 'CancellationToken':
        """A token that is already cancelled."""
        return cls(cancelled=True)


def ensure_token(token: Optional[CancellationToken]) -> CancellationToken:
    """Return token, or a fresh never-cancelled token when None."""
    return token if token is not None else CancellationToken()
