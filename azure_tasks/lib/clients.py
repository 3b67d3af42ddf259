"""Azure SDK client construction from task connection strings."""

from __future__ import annotations

import logging

from azure.storage.blob import BlobServiceClient, ContainerClient
from azure.storage.queue import QueueClient

from azure_tasks.lib.env import expand_env_vars
from azure_tasks.lib.errors import InvalidOptionError

logger = logging.getLogger(__name__)

__all__ = [
    "DEVELOPMENT_STORAGE_CONNECTION_STRING",
    "get_blob_service_client",
    "get_container_client",
    "get_queue_client",
    "resolve_connection_string",
]

# Well-known local emulator (Azurite) account
DEVELOPMENT_STORAGE_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=http;"
    "AccountName=devstoreaccount1;"
    "AccountKey=Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw==;"
    "BlobEndpoint=http://127.0.0.1:10000/devstoreaccount1;"
    "QueueEndpoint=http://127.0.0.1:10001/devstoreaccount1;"
    "TableEndpoint=http://127.0.0.1:10002/devstoreaccount1;"
)


def resolve_connection_string(connection_string: str) -> str:
    """Expand ${VAR} references and the UseDevelopmentStorage shortcut.

    Raises:
        InvalidOptionError: The string is empty or references an unset variable.
    """
    resolved = expand_env_vars(connection_string or "", strict=True).strip()
    if not resolved:
        raise InvalidOptionError(
            "Connection string is empty",
            option="connection_string",
            suggestion="Set the connection string or the environment variable it references.",
        )

    settings = {
        key.strip().lower(): value.strip()
        for key, _, value in (part.partition("=") for part in resolved.split(";") if part)
    }
    if settings.get("usedevelopmentstorage", "").lower() == "true":
        logger.debug("Using local development storage endpoints")
        return DEVELOPMENT_STORAGE_CONNECTION_STRING
    return resolved


def _malformed(e: ValueError) -> InvalidOptionError:
    return InvalidOptionError(
        "Connection string is malformed",
        option="connection_string",
        cause=e,
        suggestion="Use the form AccountName=...;AccountKey=...;EndpointSuffix=...",
    )


def get_blob_service_client(connection_string: str) -> BlobServiceClient:
    resolved = resolve_connection_string(connection_string)
    try:
        return BlobServiceClient.from_connection_string(resolved)
    except ValueError as e:
        raise _malformed(e) from e


def get_container_client(connection_string: str, container_name: str) -> ContainerClient:
    """Get a client for one container; no network call is made."""
    return get_blob_service_client(connection_string).get_container_client(container_name)


def get_queue_client(connection_string: str, queue_name: str) -> QueueClient:
    resolved = resolve_connection_string(connection_string)
    try:
        return QueueClient.from_connection_string(resolved, queue_name)
    except ValueError as e:
        raise _malformed(e) from e
