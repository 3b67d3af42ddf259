"""Tests for the ``python -m azure_tasks`` runner."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import yaml
from azure.core.credentials import AccessToken
from azure.core.exceptions import HttpResponseError

from azure_tasks.__main__ import TASKS, build_arguments, load_task_config, main, run_task
from azure_tasks.lib.cancellation import CancellationToken
from azure_tasks.lib.definitions import ListBlobsSourceProperties
from azure_tasks.lib.errors import TaskCancelledError
from azure_tasks.lib.resilience import RetryConfig


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("azure_tasks.__main__.setup_logging"):
        yield


@pytest.fixture
def write_config(tmp_path):
    def _write(data, name="task.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def listing(mock_container):
    mock_container.list_blobs.return_value = [
        SimpleNamespace(name="a.txt", blob_type="BlockBlob", etag='"0x1"')
    ]
    mock_container.get_blob_client.side_effect = lambda name: SimpleNamespace(
        url=f"http://127.0.0.1:10000/devstoreaccount1/test-container/{name}"
    )
    with patch("azure_tasks.lib.blob_tasks.get_container_client", return_value=mock_container):
        yield mock_container


class TestRegistry:
    def test_every_task_registered(self):
        assert set(TASKS) == {
            "list_blobs",
            "download_blob",
            "read_blob_content",
            "delete_blob",
            "delete_container",
            "upload_file",
            "create_queue",
            "delete_queue",
            "get_queue_length",
            "insert_message",
            "peek_next_message",
            "delete_message",
            "get_access_token",
        }

    def test_build_arguments(self):
        arguments = build_arguments(
            TASKS["list_blobs"], {"source": {"container_name": "test-container", "prefix": "logs/"}}
        )

        assert arguments == [
            ListBlobsSourceProperties(container_name="test-container", prefix="logs/")
        ]

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown config sections: extra"):
            build_arguments(TASKS["list_blobs"], {"source": {"container_name": "c"}, "extra": {}})

    def test_load_config_expands_env(self, write_config, monkeypatch):
        monkeypatch.setenv("CONTAINER", "invoices")

        config = load_task_config(write_config({"source": {"container_name": "${CONTAINER}"}}))

        assert config == {"source": {"container_name": "invoices"}}

    def test_config_must_be_mapping(self, write_config):
        with pytest.raises(ValueError):
            load_task_config(write_config(["not", "a", "mapping"]))


class TestRunTask:
    def test_retries_storage_failures(self, listing):
        listing.list_blobs.side_effect = [
            HttpResponseError("ServerBusy"),
            [SimpleNamespace(name="a.txt", blob_type="BlockBlob", etag=None)],
        ]

        result = run_task(
            "list_blobs",
            {"source": {"container_name": "test-container"}},
            retry=RetryConfig(max_attempts=2, backoff_seconds=0.01, jitter=False),
        )

        assert [blob.name for blob in result.blobs] == ["a.txt"]
        assert listing.list_blobs.call_count == 2

    def test_passes_cancellation(self, mock_queue):
        token = CancellationToken()
        token.cancel()

        with patch("azure_tasks.lib.queue_tasks.get_queue_client", return_value=mock_queue):
            with pytest.raises(TaskCancelledError):
                run_task("create_queue", {"connection": {"queue_name": "orders-in"}}, token)


class TestMain:
    def test_list(self, capsys):
        assert main(["--list"]) == 0
        assert "upload_file" in capsys.readouterr().out

    def test_no_task(self, capsys):
        assert main([]) == 1

    def test_unknown_task(self, capsys):
        assert main(["copy_blob", "-c", "x.yaml"]) == 1
        assert "Unknown task 'copy_blob'" in capsys.readouterr().err

    def test_config_required(self, capsys):
        assert main(["list_blobs"]) == 1
        assert "--config is required" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["list_blobs", "-c", str(tmp_path / "missing.yaml")]) == 1
        assert "Cannot read config" in capsys.readouterr().err

    def test_invalid_properties(self, write_config, capsys):
        path = write_config({"source": {"container_name": "test-container", "flat": True}})

        assert main(["list_blobs", "-c", path]) == 1
        assert "Invalid task properties" in capsys.readouterr().err

    def test_invalid_retries(self, write_config, capsys):
        path = write_config({"source": {"container_name": "test-container"}})

        assert main(["list_blobs", "-c", path, "--retries", "0"]) == 1

    def test_prints_json_result(self, listing, write_config, capsys):
        path = write_config({"source": {"container_name": "test-container"}})

        assert main(["list_blobs", "-c", path]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["blobs"][0]["name"] == "a.txt"
        assert output["blobs"][0]["blob_type"] == "Block"

    def test_task_error_exit_code(self, tmp_path, write_config, capsys):
        path = write_config(
            {
                "input": {"source_file": str(tmp_path / "NonExistingFile")},
                "destination": {"container_name": "test-container"},
            }
        )

        assert main(["upload_file", "-c", path]) == 1
        assert "does not exist" in capsys.readouterr().err

    def test_access_token_output(self, write_config, capsys):
        path = write_config(
            {
                "properties": {
                    "auth_context_url": "https://login.microsoftonline.com/contoso.onmicrosoft.com",
                    "client_id": "client",
                    "client_secret": "secret",
                    "resource": "https://management.azure.com/",
                }
            }
        )

        with patch("azure_tasks.lib.oauth_tasks.ClientSecretCredential") as credential_cls:
            credential_cls.return_value.get_token.return_value = AccessToken("jwt-token", 0)
            assert main(["get_access_token", "-c", path]) == 0

        assert json.loads(capsys.readouterr().out) == {"access_token": "jwt-token"}

    def test_env_file(self, tmp_path, listing, write_config, monkeypatch, capsys):
        monkeypatch.delenv("TASK_CONTAINER", raising=False)
        env_file = tmp_path / "tasks.env"
        env_file.write_text("TASK_CONTAINER=test-container\n")
        path = write_config({"source": {"container_name": "${TASK_CONTAINER}"}})

        try:
            assert main(["list_blobs", "-c", path, "--env-file", str(env_file)]) == 0
        finally:
            monkeypatch.delenv("TASK_CONTAINER", raising=False)

        listing.list_blobs.assert_called_once_with(name_starts_with=None)
