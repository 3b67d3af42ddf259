"""Queue storage tasks.

Every task takes ``QueueOptions.throw_error_on_failure``: when set, SDK
failures raise QueueOperationError; otherwise the task returns a result
with ``success=False`` and the error message in ``info``. Cancellation
always raises.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.queue import QueueClient

from azure_tasks.lib.cancellation import CancellationToken, check_cancelled
from azure_tasks.lib.clients import get_queue_client
from azure_tasks.lib.definitions import (
    QueueConnectionProperties,
    QueueGetLengthResult,
    QueueMessageProperties,
    QueueOperationResult,
    QueueOptions,
    QueuePeekMessageResult,
)
from azure_tasks.lib.errors import InvalidOptionError, QueueOperationError

logger = logging.getLogger(__name__)

__all__ = [
    "create_queue",
    "delete_queue",
    "get_queue_length",
    "insert_message",
    "peek_next_message",
    "delete_message",
]

R = TypeVar("R")


def _run(
    task: str,
    connection: QueueConnectionProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken],
    operation: Callable[[QueueClient], R],
    on_failure: Callable[[str], R],
) -> R:
    check_cancelled(cancellation, "connecting to queue")
    try:
        queue = get_queue_client(connection.storage_connection_string, connection.queue_name)
        check_cancelled(cancellation, task)
        return operation(queue)
    except (AzureError, InvalidOptionError, ValueError) as e:
        if options.throw_error_on_failure:
            raise QueueOperationError(
                f"{task} failed",
                queue=connection.queue_name,
                task=task,
                cause=e,
            ) from e
        logger.warning("%s failed for queue %s: %s", task, connection.queue_name, e)
        return on_failure(str(e))


def create_queue(
    connection: QueueConnectionProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken] = None,
) -> QueueOperationResult:
    """Create a queue. An existing queue gives success=False."""
    name = connection.queue_name

    def operation(queue: QueueClient) -> QueueOperationResult:
        try:
            queue.create_queue()
        except ResourceExistsError:
            return QueueOperationResult(success=False, info=f"Queue named '{name}' already exists.")
        logger.info("Created queue %s", name)
        return QueueOperationResult(success=True, info=f"Queue '{name}' created.")

    return _run(
        "create_queue", connection, options, cancellation, operation,
        lambda info: QueueOperationResult(success=False, info=info),
    )


def delete_queue(
    connection: QueueConnectionProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken] = None,
) -> QueueOperationResult:
    """Delete a queue. A missing queue gives success=False."""
    name = connection.queue_name

    def operation(queue: QueueClient) -> QueueOperationResult:
        try:
            queue.delete_queue()
        except ResourceNotFoundError:
            return QueueOperationResult(success=False, info=f"Queue '{name}' not found.")
        logger.info("Deleted queue %s", name)
        return QueueOperationResult(success=True, info=f"Queue '{name}' deleted.")

    return _run(
        "delete_queue", connection, options, cancellation, operation,
        lambda info: QueueOperationResult(success=False, info=info),
    )


def get_queue_length(
    connection: QueueConnectionProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken] = None,
) -> QueueGetLengthResult:
    """Approximate number of messages in a queue."""

    def operation(queue: QueueClient) -> QueueGetLengthResult:
        properties = queue.get_queue_properties()
        count = properties.approximate_message_count
        return QueueGetLengthResult(success=True, count=count or 0)

    return _run(
        "get_queue_length", connection, options, cancellation, operation,
        lambda info: QueueGetLengthResult(success=False, info=info),
    )


def insert_message(
    connection: QueueConnectionProperties,
    message: QueueMessageProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken] = None,
) -> QueueOperationResult:
    """Add a message to a queue, creating the queue first if requested."""
    name = connection.queue_name

    def operation(queue: QueueClient) -> QueueOperationResult:
        if message.create_queue:
            try:
                queue.create_queue()
            except ResourceExistsError:
                pass
        queue.send_message(message.content)
        logger.debug("Added message to queue %s", name)
        return QueueOperationResult(success=True, info=f"Message added to queue '{name}'.")

    return _run(
        "insert_message", connection, options, cancellation, operation,
        lambda info: QueueOperationResult(success=False, info=info),
    )


def peek_next_message(
    connection: QueueConnectionProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken] = None,
) -> QueuePeekMessageResult:
    """Return the content of the message at the front of the queue without removing it."""
    name = connection.queue_name

    def operation(queue: QueueClient) -> QueuePeekMessageResult:
        peeked = queue.peek_messages(max_messages=1)
        if not peeked:
            return QueuePeekMessageResult(
                success=False, info=f"Message not found in queue '{name}'"
            )
        return QueuePeekMessageResult(success=True, content=peeked[0].content)

    return _run(
        "peek_next_message", connection, options, cancellation, operation,
        lambda info: QueuePeekMessageResult(success=False, info=info),
    )


def delete_message(
    connection: QueueConnectionProperties,
    options: QueueOptions,
    cancellation: Optional[CancellationToken] = None,
) -> QueueOperationResult:
    """Receive and delete the next message in the queue."""
    name = connection.queue_name

    def operation(queue: QueueClient) -> QueueOperationResult:
        received = queue.receive_message()
        if received is None:
            return QueueOperationResult(
                success=False,
                info=f"Could not delete message: Message not found in queue '{name}'",
            )
        queue.delete_message(received)
        return QueueOperationResult(success=True, info=f"Deleted next message in queue '{name}'")

    return _run(
        "delete_message", connection, options, cancellation, operation,
        lambda info: QueueOperationResult(success=False, info=info),
    )
