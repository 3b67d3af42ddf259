"""Cooperative cancellation for tasks.

Tasks check the token between steps; nothing is interrupted mid-call.
"""

from __future__ import annotations

import threading
from typing import Optional

from azure_tasks.lib.errors import TaskCancelledError

__all__ = ["CancellationToken", "check_cancelled"]


class CancellationToken:
    """Thread-safe cancellation flag shared between a host and a task.

    Example:
        token = CancellationToken()
        threading.Timer(30, token.cancel).start()
        upload_file(input, destination, token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancellation_requested(self) -> bool:
        return self._event.is_set()

    def throw_if_cancellation_requested(self, step: str = "") -> None:
        """Raise TaskCancelledError if cancel() has been called."""
        if self._event.is_set():
            message = f"Task cancelled before {step}" if step else "Task cancelled"
            raise TaskCancelledError(message)


def check_cancelled(token: Optional[CancellationToken], step: str = "") -> None:
    """Check an optional token; a missing token never cancels."""
    if token is not None:
        token.throw_if_cancellation_requested(step)
