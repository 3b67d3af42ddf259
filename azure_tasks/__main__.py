"""CLI entry point for running tasks.

Usage:
    python -m azure_tasks --list
    python -m azure_tasks upload_file --config upload.yaml
    python -m azure_tasks read_blob_content -c read.yaml --json-log
    python -m azure_tasks insert_message -c message.yaml --retries 3

The config file is YAML with one mapping per task parameter, e.g. for
upload_file:

    input:
      source_file: ./out/orders.xml
      compress: true
    destination:
      connection_string: ${AZURE_STORAGE_CONNECTION_STRING}
      container_name: orders
      create_container_if_it_does_not_exist: true
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

import yaml
from pydantic import BaseModel, ValidationError

from azure_tasks.lib import blob_tasks, oauth_tasks, queue_tasks
from azure_tasks.lib.cancellation import CancellationToken
from azure_tasks.lib.definitions import (
    DeleteBlobProperties,
    DeleteBlobsBlobConnectionProperties,
    DeleteBlobsContainerConnectionProperties,
    DeleteBlobsContainerProperties,
    DownloadBlobDestinationFileProperties,
    DownloadBlobSourceProperties,
    ListBlobsSourceProperties,
    OAuthProperties,
    QueueConnectionProperties,
    QueueMessageProperties,
    QueueOptions,
    UploadBlobsDestinationProperties,
    UploadBlobsInput,
)
from azure_tasks.lib.env import expand_options, load_env_file
from azure_tasks.lib.errors import TaskError
from azure_tasks.lib.logging import setup_logging
from azure_tasks.lib.resilience import RetryConfig, retry_operation
from azure_tasks.lib.settings import TaskSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskSpec:
    """How to call one task from a config mapping."""

    function: Callable[..., Any]
    parameters: Tuple[Tuple[str, Type[BaseModel]], ...]
    cancellable: bool = True
    description: str = ""


_QUEUE = (("connection", QueueConnectionProperties), ("options", QueueOptions))

TASKS: Dict[str, TaskSpec] = {
    "list_blobs": TaskSpec(
        blob_tasks.list_blobs,
        (("source", ListBlobsSourceProperties),),
        cancellable=False,
        description="List blobs in a container",
    ),
    "download_blob": TaskSpec(
        blob_tasks.download_blob,
        (
            ("source", DownloadBlobSourceProperties),
            ("destination", DownloadBlobDestinationFileProperties),
        ),
        description="Download a blob to a local file",
    ),
    "read_blob_content": TaskSpec(
        blob_tasks.read_blob_content,
        (("source", DownloadBlobSourceProperties),),
        description="Read a blob's text content",
    ),
    "delete_blob": TaskSpec(
        blob_tasks.delete_blob,
        (("target", DeleteBlobProperties), ("connection", DeleteBlobsBlobConnectionProperties)),
        description="Delete a single blob",
    ),
    "delete_container": TaskSpec(
        blob_tasks.delete_container,
        (
            ("target", DeleteBlobsContainerProperties),
            ("connection", DeleteBlobsContainerConnectionProperties),
        ),
        description="Delete a container",
    ),
    "upload_file": TaskSpec(
        blob_tasks.upload_file,
        (("input", UploadBlobsInput), ("destination", UploadBlobsDestinationProperties)),
        description="Upload a local file as a blob",
    ),
    "create_queue": TaskSpec(queue_tasks.create_queue, _QUEUE, description="Create a queue"),
    "delete_queue": TaskSpec(queue_tasks.delete_queue, _QUEUE, description="Delete a queue"),
    "get_queue_length": TaskSpec(
        queue_tasks.get_queue_length, _QUEUE, description="Approximate queue length"
    ),
    "insert_message": TaskSpec(
        queue_tasks.insert_message,
        (
            ("connection", QueueConnectionProperties),
            ("message", QueueMessageProperties),
            ("options", QueueOptions),
        ),
        description="Add a message to a queue",
    ),
    "peek_next_message": TaskSpec(
        queue_tasks.peek_next_message, _QUEUE, description="Peek at the next queue message"
    ),
    "delete_message": TaskSpec(
        queue_tasks.delete_message, _QUEUE, description="Delete the next queue message"
    ),
    "get_access_token": TaskSpec(
        oauth_tasks.get_access_token,
        (("properties", OAuthProperties),),
        description="Get an OAuth access token",
    ),
}


def list_tasks() -> None:
    """Print available tasks and their config sections."""
    print("\nAvailable tasks:")
    print("-" * 60)
    for name, spec in sorted(TASKS.items()):
        sections = ", ".join(param for param, _ in spec.parameters)
        print(f"  {name:<20} {spec.description}")
        print(f"  {'':<20} sections: {sections}")
    print()


def load_task_config(path: Path) -> Dict[str, Any]:
    """Load a YAML task config and expand ${VAR} references."""
    with open(path, encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping of task sections")
    return expand_options(raw)


def build_arguments(spec: TaskSpec, config: Dict[str, Any]) -> List[BaseModel]:
    """Validate each config section into its property model."""
    unknown = set(config) - {param for param, _ in spec.parameters}
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")
    return [model.model_validate(config.get(param) or {}) for param, model in spec.parameters]


def run_task(
    name: str,
    config: Dict[str, Any],
    cancellation: Optional[CancellationToken] = None,
    retry: Optional[RetryConfig] = None,
) -> Any:
    """Run a registered task with properties taken from ``config``."""
    spec = TASKS[name]
    arguments: List[Any] = list(build_arguments(spec, config))
    if spec.cancellable:
        arguments.append(cancellation)

    return retry_operation(
        lambda: spec.function(*arguments),
        retry or RetryConfig.none(),
        name,
    )


def _to_json(result: Any) -> str:
    if isinstance(result, str):
        payload: Any = {"access_token": result}
    else:
        payload = result.to_dict()
    return json.dumps(payload, indent=2, default=str)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run Azure Storage tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List available tasks
    python -m azure_tasks --list

    # Upload a file described in upload.yaml
    python -m azure_tasks upload_file --config upload.yaml

    # Retry transient storage failures up to 3 times
    python -m azure_tasks insert_message -c message.yaml --retries 3
        """,
    )
    parser.add_argument("task", nargs="?", help="Task name (see --list)")
    parser.add_argument("--config", "-c", help="YAML file with the task properties")
    parser.add_argument(
        "--list", "-l", action="store_true", dest="list_tasks", help="List available tasks"
    )
    parser.add_argument("--env-file", help="Load environment variables from this .env file")
    parser.add_argument(
        "--retries",
        type=int,
        help="Total attempts for transient storage failures (default: from settings)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-log",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument("--log-file", help="Write logs to a file in addition to console")

    args = parser.parse_args(argv)

    if args.env_file:
        load_env_file(args.env_file, override=True)

    settings = TaskSettings()
    setup_logging(
        verbose=args.verbose or settings.verbose,
        json_format=args.json_log or settings.json_format,
        log_file=args.log_file or settings.log_file,
    )

    if args.list_tasks:
        list_tasks()
        return 0

    if not args.task:
        parser.print_help()
        return 1

    if args.task not in TASKS:
        print(f"Error: Unknown task '{args.task}'", file=sys.stderr)
        print("Use --list to see available tasks", file=sys.stderr)
        return 1

    if not args.config:
        print("Error: --config is required to run a task", file=sys.stderr)
        return 1

    retry = settings.retry_config()
    if args.retries is not None:
        if args.retries < 1:
            print("Error: --retries must be at least 1", file=sys.stderr)
            return 1
        retry = RetryConfig(max_attempts=args.retries, backoff_seconds=settings.retry_delay)

    cancellation = CancellationToken()
    signal.signal(signal.SIGTERM, lambda signum, frame: cancellation.cancel())

    try:
        config = load_task_config(Path(args.config))
        result = run_task(args.task, config, cancellation, retry)
    except (OSError, yaml.YAMLError) as e:
        print(f"Error: Cannot read config {args.config}: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Error: Invalid task properties:\n{e}", file=sys.stderr)
        return 1
    except TaskError as e:
        logger.error("Task %s failed", args.task, extra={"error": e.to_dict()})
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(_to_json(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
