"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


EXISTING_FILE_NAME = "existing_file.txt"


@pytest.fixture
def test_directory(tmp_path):
    """Directory holding one file named existing_file.txt."""
    (tmp_path / EXISTING_FILE_NAME).write_text(
        "I'm walking here! I'm walking here!", encoding="utf-8"
    )
    return tmp_path


@pytest.fixture
def existing_file(test_directory):
    return test_directory / EXISTING_FILE_NAME


@pytest.fixture
def xml_file(tmp_path):
    """A compressible XML source file."""
    path = tmp_path / "TestFile.xml"
    body = "".join(
        f"  <item><input>WhatHasBeenSeenCannotBeUnseen</input><n>{i}</n></item>\n"
        for i in range(50)
    )
    path.write_text(f"<root>\n{body}</root>\n", encoding="utf-8")
    return path


def make_blob_properties(blob_type="BlockBlob", content_encoding=None, name="test-blob.txt", etag='"0x1"'):
    """Stand-in for azure.storage.blob.BlobProperties."""
    return SimpleNamespace(
        name=name,
        blob_type=blob_type,
        etag=etag,
        content_settings=SimpleNamespace(content_encoding=content_encoding),
    )


@pytest.fixture
def mock_blob():
    """Mock BlobClient with a downloadable block blob."""
    blob = Mock()
    blob.url = "http://127.0.0.1:10000/devstoreaccount1/test-container/test-blob.txt"
    blob.get_blob_properties = Mock(return_value=make_blob_properties())
    blob.download_blob = Mock()
    blob.download_blob.return_value.readall.return_value = (
        b"<root><input>WhatHasBeenSeenCannotBeUnseen</input></root>"
    )
    return blob


@pytest.fixture
def mock_container(mock_blob):
    """Mock ContainerClient that hands out mock_blob."""
    container = Mock()
    container.exists = Mock(return_value=True)
    container.create_container = Mock()
    container.delete_container = Mock()
    container.list_blobs = Mock(return_value=[])
    container.walk_blobs = Mock(return_value=[])
    container.get_blob_client = Mock(return_value=mock_blob)
    return container


@pytest.fixture
def mock_queue():
    """Mock QueueClient."""
    queue = Mock()
    queue.create_queue = Mock()
    queue.delete_queue = Mock()
    queue.send_message = Mock()
    queue.peek_messages = Mock(return_value=[])
    queue.receive_message = Mock(return_value=None)
    queue.delete_message = Mock()
    queue.get_queue_properties = Mock(
        return_value=SimpleNamespace(approximate_message_count=0)
    )
    return queue
