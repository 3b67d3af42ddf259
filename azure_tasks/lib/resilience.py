"""Caller-side retry for task invocations.

Tasks never retry internally; the Azure SDK clients apply their own
transport retry policy. A host that wants to re-run a whole task after a
failed storage call opts in here.

Implementation: Uses tenacity for the retry loop.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Tuple, Type

import tenacity
from tenacity.wait import wait_base

from azure_tasks.lib.errors import (
    QueueOperationError,
    StorageOperationError,
    TokenAcquisitionError,
)

logger = logging.getLogger(__name__)

__all__ = ["RetryConfig", "retry_operation", "TRANSIENT_ERRORS"]

# Validation errors (missing source, bad option, name conflict) and
# cancellation are never worth retrying.
TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (
    StorageOperationError,
    QueueOperationError,
    TokenAcquisitionError,
)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        exponential: bool = True,
        jitter: bool = True,
        retry_on: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter
        self.retry_on = retry_on

    @classmethod
    def none(cls) -> "RetryConfig":
        """No retry - fail immediately."""
        return cls(max_attempts=1)

    @classmethod
    def default(cls) -> "RetryConfig":
        """Default retry: 3 attempts with exponential backoff."""
        return cls()

    def wait_strategy(self) -> wait_base:
        wait: wait_base
        if self.exponential:
            wait = tenacity.wait_exponential(
                multiplier=self.backoff_seconds, min=self.backoff_seconds
            )
        else:
            wait = tenacity.wait_fixed(self.backoff_seconds)

        if self.jitter:
            wait = wait + tenacity.wait_random(0, self.backoff_seconds * 0.5)
        return wait


def retry_operation(
    operation: Callable[[], Any],
    config: RetryConfig,
    operation_name: str = "task",
) -> Any:
    """Execute an operation, retrying transient task failures.

    Example:
        result = retry_operation(
            lambda: upload_file(input, destination),
            RetryConfig(max_attempts=5),
            "upload_file",
        )
    """

    def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
            operation_name,
            retry_state.attempt_number,
            config.max_attempts,
            exception,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    retryer = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=tenacity.retry_if_exception_type(config.retry_on),
        before_sleep=before_sleep_handler,
        reraise=True,
    )

    try:
        return retryer(operation)
    except config.retry_on:
        if config.max_attempts > 1:
            logger.error(
                "%s failed after %d attempts",
                operation_name,
                config.max_attempts,
            )
        raise
