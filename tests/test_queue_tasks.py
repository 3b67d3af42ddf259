"""Tests for queue tasks against a mocked QueueClient."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from pydantic import ValidationError

from azure_tasks.lib import queue_tasks
from azure_tasks.lib.cancellation import CancellationToken
from azure_tasks.lib.definitions import (
    QueueConnectionProperties,
    QueueMessageProperties,
    QueueOptions,
)
from azure_tasks.lib.errors import QueueOperationError, TaskCancelledError

CONNECTION = QueueConnectionProperties(queue_name="orders-in")
RAISE = QueueOptions()
REPORT = QueueOptions(throw_error_on_failure=False)


@pytest.fixture
def patched_queue(mock_queue):
    with patch("azure_tasks.lib.queue_tasks.get_queue_client", return_value=mock_queue) as factory:
        yield factory


class TestCreateDeleteQueue:
    def test_create(self, mock_queue, patched_queue):
        result = queue_tasks.create_queue(CONNECTION, RAISE)

        assert result.success is True
        patched_queue.assert_called_once_with("UseDevelopmentStorage=true", "orders-in")
        mock_queue.create_queue.assert_called_once_with()

    def test_create_existing_queue(self, mock_queue, patched_queue):
        mock_queue.create_queue.side_effect = ResourceExistsError("QueueAlreadyExists")

        result = queue_tasks.create_queue(CONNECTION, RAISE)

        assert result.success is False
        assert result.info == "Queue named 'orders-in' already exists."

    def test_delete(self, mock_queue, patched_queue):
        assert queue_tasks.delete_queue(CONNECTION, RAISE).success is True
        mock_queue.delete_queue.assert_called_once_with()

    def test_delete_missing_queue(self, mock_queue, patched_queue):
        mock_queue.delete_queue.side_effect = ResourceNotFoundError("QueueNotFound")

        result = queue_tasks.delete_queue(CONNECTION, RAISE)

        assert result.success is False
        assert "not found" in result.info


class TestQueueLength:
    def test_count(self, mock_queue, patched_queue):
        mock_queue.get_queue_properties.return_value = SimpleNamespace(approximate_message_count=7)

        result = queue_tasks.get_queue_length(CONNECTION, RAISE)

        assert result.success is True
        assert result.count == 7

    def test_missing_count_is_zero(self, mock_queue, patched_queue):
        mock_queue.get_queue_properties.return_value = SimpleNamespace(approximate_message_count=None)

        assert queue_tasks.get_queue_length(CONNECTION, RAISE).count == 0


class TestMessages:
    def test_insert_creates_queue_and_sends(self, mock_queue, patched_queue):
        mock_queue.create_queue.side_effect = ResourceExistsError("QueueAlreadyExists")

        result = queue_tasks.insert_message(
            CONNECTION, QueueMessageProperties(content="<order id='1'/>"), RAISE
        )

        assert result.success is True
        mock_queue.send_message.assert_called_once_with("<order id='1'/>")

    def test_insert_without_create(self, mock_queue, patched_queue):
        queue_tasks.insert_message(
            CONNECTION, QueueMessageProperties(content="hello", create_queue=False), RAISE
        )

        mock_queue.create_queue.assert_not_called()
        mock_queue.send_message.assert_called_once_with("hello")

    def test_peek_returns_content(self, mock_queue, patched_queue):
        mock_queue.peek_messages.return_value = [SimpleNamespace(content="first")]

        result = queue_tasks.peek_next_message(CONNECTION, RAISE)

        assert result.success is True
        assert result.content == "first"
        mock_queue.peek_messages.assert_called_once_with(max_messages=1)

    def test_peek_empty_queue(self, patched_queue):
        result = queue_tasks.peek_next_message(CONNECTION, RAISE)

        assert result.success is False
        assert result.content is None
        assert result.info == "Message not found in queue 'orders-in'"

    def test_delete_next_message(self, mock_queue, patched_queue):
        message = SimpleNamespace(id="1", pop_receipt="r", content="first")
        mock_queue.receive_message.return_value = message

        result = queue_tasks.delete_message(CONNECTION, RAISE)

        assert result.success is True
        mock_queue.delete_message.assert_called_once_with(message)

    def test_delete_from_empty_queue(self, mock_queue, patched_queue):
        result = queue_tasks.delete_message(CONNECTION, RAISE)

        assert result.success is False
        assert result.info.startswith("Could not delete message")
        mock_queue.delete_message.assert_not_called()


class TestFailureHandling:
    def test_raises_when_requested(self, mock_queue, patched_queue):
        mock_queue.send_message.side_effect = HttpResponseError("server busy")

        with pytest.raises(QueueOperationError) as exc_info:
            queue_tasks.insert_message(CONNECTION, QueueMessageProperties(content="x"), RAISE)

        assert exc_info.value.queue == "orders-in"
        assert exc_info.value.task == "insert_message"
        assert isinstance(exc_info.value.__cause__, HttpResponseError)

    def test_reports_failure_in_result(self, mock_queue, patched_queue):
        mock_queue.get_queue_properties.side_effect = ServiceRequestError("connection refused")

        result = queue_tasks.get_queue_length(CONNECTION, REPORT)

        assert result.success is False
        assert result.count == 0
        assert "connection refused" in result.info

    def test_bad_connection_string_is_reported(self, patched_queue):
        patched_queue.side_effect = ValueError("Connection string missing required connection details.")

        result = queue_tasks.create_queue(CONNECTION, REPORT)

        assert result.success is False
        assert "Connection string" in result.info

    def test_cancellation_always_raises(self, patched_queue):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(TaskCancelledError):
            queue_tasks.create_queue(CONNECTION, REPORT, token)

        patched_queue.assert_not_called()

    def test_output_to_dict(self, patched_queue):
        data = queue_tasks.get_queue_length(CONNECTION, RAISE).to_dict()

        assert data == {"success": True, "info": None, "count": 0}


class TestQueueProperties:
    @pytest.mark.parametrize("name", ["ab", "-orders", "orders_in", "orders in"])
    def test_invalid_queue_names(self, name):
        with pytest.raises(ValidationError):
            QueueConnectionProperties(queue_name=name)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            QueueOptions(throw_on_failure=False)
