"""Blob storage tasks: list, upload, download, read and delete.

Each task validates its properties, makes the SDK calls and maps the
result into an output record. SDK failures surface as
StorageOperationError with the original exception attached.
"""

from __future__ import annotations

import gzip
import logging
import mimetypes
from pathlib import PurePosixPath
from typing import Dict, Iterable, Optional, Tuple

from azure.core import MatchConditions
from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobClient, BlobPrefix, ContainerClient, ContentSettings
from azure.storage.blob import BlobType as SdkBlobType

from azure_tasks.lib.cancellation import CancellationToken, check_cancelled
from azure_tasks.lib.clients import get_blob_service_client, get_container_client
from azure_tasks.lib.definitions import (
    BlobData,
    BlobKind,
    BlobType,
    DeleteBlobProperties,
    DeleteBlobsBlobConnectionProperties,
    DeleteBlobsContainerConnectionProperties,
    DeleteBlobsContainerProperties,
    DeleteBlobsOutput,
    DownloadBlobDestinationFileProperties,
    DownloadBlobOutput,
    DownloadBlobReadContentOutput,
    DownloadBlobSourceProperties,
    ListBlobsOutput,
    ListBlobsSourceProperties,
    SnapshotDeleteOption,
    UploadBlobsDestinationProperties,
    UploadBlobsInput,
    UploadBlobsOutput,
)
from azure_tasks.lib.errors import (
    InvalidOptionError,
    SourceNotFoundError,
    StorageOperationError,
)
from azure_tasks.lib.logging import get_task_logger
from azure_tasks.lib.materializer import (
    DEFAULT_ENCODING,
    SourceFile,
    StreamOptions,
    build_upload_stream,
    resolve_encoding,
    web_encoding_name,
    write_text_to_file,
)

logger = logging.getLogger(__name__)

__all__ = [
    "list_blobs",
    "download_blob",
    "read_blob_content",
    "delete_blob",
    "delete_container",
    "upload_file",
]

_SDK_BLOB_TYPES: Dict[BlobType, SdkBlobType] = {
    BlobType.BLOCK: SdkBlobType.BLOCKBLOB,
    BlobType.APPEND: SdkBlobType.APPENDBLOB,
    BlobType.PAGE: SdkBlobType.PAGEBLOB,
}

_LISTED_KINDS: Dict[str, BlobKind] = {
    SdkBlobType.BLOCKBLOB.value: BlobKind.BLOCK,
    SdkBlobType.APPENDBLOB.value: BlobKind.APPEND,
    SdkBlobType.PAGEBLOB.value: BlobKind.PAGE,
}

_DELETE_SNAPSHOTS: Dict[SnapshotDeleteOption, Optional[str]] = {
    SnapshotDeleteOption.NONE: None,
    SnapshotDeleteOption.INCLUDE_SNAPSHOTS: "include",
    SnapshotDeleteOption.DELETE_SNAPSHOTS_ONLY: "only",
}

PAGE_BLOB_ALIGNMENT = 512


def _sdk_value(value: object) -> str:
    return str(getattr(value, "value", value))


def _blob_kind(item: object) -> BlobKind:
    """Map a listing item onto the closed BlobKind variant."""
    if isinstance(item, BlobPrefix):
        return BlobKind.DIRECTORY
    sdk_type = _sdk_value(getattr(item, "blob_type", ""))
    try:
        return _LISTED_KINDS[sdk_type]
    except KeyError:
        raise StorageOperationError(
            f"Unrecognised blob type '{sdk_type}' in listing",
            blob=getattr(item, "name", None),
        ) from None


def _check_blob_type(properties: object, expected: BlobType, blob_name: str) -> None:
    actual = _sdk_value(getattr(properties, "blob_type", ""))
    if actual != _SDK_BLOB_TYPES[expected].value:
        raise InvalidOptionError(
            f"Blob '{blob_name}' is a {actual}, not a {expected.value} blob",
            option="blob_type",
            value=expected.value,
        )


# ============================================
# ListBlobs
# ============================================


def list_blobs(source: ListBlobsSourceProperties) -> ListBlobsOutput:
    """List blobs in a container.

    A flat listing returns every blob under the prefix. A hierarchical
    listing returns one level, with virtual directories as Directory
    entries.
    """
    container = get_container_client(source.connection_string, source.container_name)
    prefix = source.prefix if source.prefix and source.prefix.strip() else None

    try:
        items: Iterable[object]
        if source.flat_blob_listing:
            items = container.list_blobs(name_starts_with=prefix)
        else:
            items = container.walk_blobs(name_starts_with=prefix, delimiter="/")

        blobs = []
        for item in items:
            kind = _blob_kind(item)
            name = getattr(item, "name")
            blobs.append(
                BlobData(
                    blob_type=kind,
                    uri=container.get_blob_client(name).url,
                    name=name,
                    etag=None if kind is BlobKind.DIRECTORY else getattr(item, "etag", None),
                )
            )
    except AzureError as e:
        raise StorageOperationError(
            "Error occurred while listing blobs",
            container=source.container_name,
            cause=e,
        ) from e

    logger.info("Listed %d entries in container %s", len(blobs), source.container_name)
    return ListBlobsOutput(blobs=blobs)


# ============================================
# DownloadBlob / ReadBlobContent
# ============================================


def _content_encoding(blob_properties: object) -> Optional[str]:
    settings = getattr(blob_properties, "content_settings", None)
    value = getattr(settings, "content_encoding", None) if settings else None
    return value.strip() if value else None


def _download_text(
    source: DownloadBlobSourceProperties,
    cancellation: Optional[CancellationToken],
) -> Tuple[str, str]:
    """Download a blob and decode it. Returns (content, encoding)."""
    check_cancelled(cancellation, "connecting to container")
    explicit_encoding = (
        resolve_encoding(source.encoding) if source.encoding and source.encoding.strip() else None
    )
    container = get_container_client(source.connection_string, source.container_name)

    check_cancelled(cancellation, "reading blob properties")
    blob: BlobClient = container.get_blob_client(source.blob_name)
    try:
        properties = blob.get_blob_properties()
        _check_blob_type(properties, source.blob_type, source.blob_name)
        check_cancelled(cancellation, "downloading blob")
        data = blob.download_blob().readall()
    except AzureError as e:
        raise StorageOperationError(
            "Error occurred while downloading blob",
            container=source.container_name,
            blob=source.blob_name,
            cause=e,
        ) from e

    content_encoding = _content_encoding(properties)
    if content_encoding and content_encoding.lower() == "gzip":
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError) as e:
            raise StorageOperationError(
                "Blob is marked gzip but could not be decompressed",
                container=source.container_name,
                blob=source.blob_name,
                cause=e,
            ) from e
        content_encoding = None

    if explicit_encoding:
        encoding = explicit_encoding
    else:
        encoding = DEFAULT_ENCODING
        if content_encoding:
            try:
                encoding = resolve_encoding(content_encoding)
            except InvalidOptionError:
                logger.debug(
                    "Blob %s has non-text Content-Encoding %r, decoding as %s",
                    source.blob_name,
                    content_encoding,
                    DEFAULT_ENCODING,
                )

    try:
        return data.decode(encoding), encoding
    except UnicodeDecodeError as e:
        raise InvalidOptionError(
            f"Blob '{source.blob_name}' cannot be decoded as {encoding}",
            option="encoding",
            value=encoding,
            cause=e,
        ) from e


def download_blob(
    source: DownloadBlobSourceProperties,
    destination: DownloadBlobDestinationFileProperties,
    cancellation: Optional[CancellationToken] = None,
) -> DownloadBlobOutput:
    """Download a blob's text content into a local file.

    The local file is named after the last segment of the blob name; an
    existing file is handled by ``destination.file_exists_operation``.
    """
    task_logger = get_task_logger(
        __name__, task="download_blob", container=source.container_name
    )
    file_name = PurePosixPath(source.blob_name).name
    if source.blob_name.endswith("/") or file_name in ("", ".", ".."):
        raise InvalidOptionError(
            f"Blob name '{source.blob_name}' does not end in a usable file name",
            option="blob_name",
            value=source.blob_name,
        )
    content, encoding = _download_text(source, cancellation)

    check_cancelled(cancellation, "writing file")
    written = write_text_to_file(
        content,
        destination.directory,
        file_name,
        encoding,
        destination.file_exists_operation,
    )
    task_logger.info("Downloaded %s to %s", source.blob_name, written.full_path)
    return DownloadBlobOutput(
        file_name=written.file_name,
        directory=written.directory,
        full_path=written.full_path,
    )


def read_blob_content(
    source: DownloadBlobSourceProperties,
    cancellation: Optional[CancellationToken] = None,
) -> DownloadBlobReadContentOutput:
    """Return a blob's content as text."""
    content, _ = _download_text(source, cancellation)
    return DownloadBlobReadContentOutput(content=content)


# ============================================
# DeleteBlob / DeleteContainer
# ============================================


def delete_blob(
    target: DeleteBlobProperties,
    connection: DeleteBlobsBlobConnectionProperties,
    cancellation: Optional[CancellationToken] = None,
) -> DeleteBlobsOutput:
    """Delete a single blob.

    A blob (or container) that does not exist counts as deleted. The ETag
    condition is only sent when ``verify_etag_when_deleting`` is set.
    """
    check_cancelled(cancellation, "connecting to container")
    container = get_container_client(connection.connection_string, connection.container_name)

    check_cancelled(cancellation, "deleting blob")
    blob = container.get_blob_client(target.blob_name)
    try:
        properties = blob.get_blob_properties()
    except ResourceNotFoundError:
        logger.info("Blob %s not found, nothing to delete", target.blob_name)
        return DeleteBlobsOutput(success=True)
    except AzureError as e:
        raise StorageOperationError(
            "Error occurred while trying to delete blob",
            container=connection.container_name,
            blob=target.blob_name,
            cause=e,
        ) from e

    _check_blob_type(properties, target.blob_type, target.blob_name)

    kwargs: Dict[str, object] = {}
    delete_snapshots = _DELETE_SNAPSHOTS[target.snapshot_delete_option]
    if delete_snapshots:
        kwargs["delete_snapshots"] = delete_snapshots
    etag = (target.verify_etag_when_deleting or "").strip()
    if etag:
        kwargs["etag"] = etag
        kwargs["match_condition"] = MatchConditions.IfNotModified

    try:
        blob.delete_blob(**kwargs)
    except ResourceNotFoundError:
        return DeleteBlobsOutput(success=False)
    except AzureError as e:
        raise StorageOperationError(
            "Error occurred while trying to delete blob",
            container=connection.container_name,
            blob=target.blob_name,
            cause=e,
        ) from e

    logger.info("Deleted blob %s/%s", connection.container_name, target.blob_name)
    return DeleteBlobsOutput(success=True)


def delete_container(
    target: DeleteBlobsContainerProperties,
    connection: DeleteBlobsContainerConnectionProperties,
    cancellation: Optional[CancellationToken] = None,
) -> DeleteBlobsOutput:
    """Delete a whole container. A missing container counts as deleted."""
    check_cancelled(cancellation, "connecting to container")
    container: ContainerClient = get_blob_service_client(
        connection.connection_string
    ).get_container_client(target.container_name)

    try:
        if not container.exists():
            return DeleteBlobsOutput(success=True)
        container.delete_container()
    except ResourceNotFoundError:
        return DeleteBlobsOutput(success=False)
    except AzureError as e:
        raise StorageOperationError(
            "Error occurred while trying to delete blob container",
            container=target.container_name,
            cause=e,
        ) from e

    logger.info("Deleted container %s", target.container_name)
    return DeleteBlobsOutput(success=True)


# ============================================
# UploadFile
# ============================================


def _ensure_container(container: ContainerClient, name: str) -> None:
    try:
        if not container.exists():
            logger.info("Creating container %s", name)
            container.create_container()
    except ResourceExistsError:
        # Created concurrently by someone else
        pass
    except AzureError as e:
        raise StorageOperationError(
            "Checking if container exists or creating new container failed",
            container=name,
            cause=e,
        ) from e


def upload_file(
    input: UploadBlobsInput,
    destination: UploadBlobsDestinationProperties,
    cancellation: Optional[CancellationToken] = None,
) -> UploadBlobsOutput:
    """Upload a single local file as a blob.

    The source file is checked before any storage client is created.
    Content-Encoding is ``gzip`` for compressed uploads, otherwise the
    text encoding.
    """
    check_cancelled(cancellation, "checking source file")
    source = SourceFile.from_path(input.source_file)
    if not source.exists:
        raise SourceNotFoundError(
            f"Source file {input.source_file} does not exist",
            path=input.source_file,
            task="upload_file",
        )
    encoding = resolve_encoding(destination.file_encoding)

    container = get_container_client(destination.connection_string, destination.container_name)
    task_logger = get_task_logger(
        __name__, task="upload_file", container=destination.container_name
    )

    check_cancelled(cancellation, "preparing container")
    if destination.create_container_if_it_does_not_exist:
        _ensure_container(container, destination.container_name)

    blob_name = (destination.rename_to or "").strip() or source.name
    blob = container.get_blob_client(blob_name)
    content_type = (
        (destination.content_type or "").strip()
        or mimetypes.guess_type(source.name)[0]
        or "application/octet-stream"
    )
    content_encoding = "gzip" if input.compress else web_encoding_name(encoding)

    options = StreamOptions(
        compress=input.compress,
        contents_only=input.contents_only,
        encoding=encoding,
    )
    with build_upload_stream(source, options, cancellation) as stream:
        if destination.blob_type is BlobType.PAGE and stream.length % PAGE_BLOB_ALIGNMENT:
            raise InvalidOptionError(
                f"Page blob payload must be a multiple of {PAGE_BLOB_ALIGNMENT} bytes, "
                f"got {stream.length}",
                option="blob_type",
                value=destination.blob_type.value,
            )

        check_cancelled(cancellation, "uploading blob")
        try:
            if destination.overwrite:
                try:
                    blob.delete_blob()
                except ResourceNotFoundError:
                    pass
            blob.upload_blob(
                stream,
                blob_type=_SDK_BLOB_TYPES[destination.blob_type],
                length=stream.length,
                overwrite=destination.overwrite,
                max_concurrency=destination.parallel_operations,
                content_settings=ContentSettings(
                    content_type=content_type,
                    content_encoding=content_encoding,
                ),
            )
        except AzureError as e:
            raise StorageOperationError(
                "Error occurred while uploading file to blob storage",
                container=destination.container_name,
                blob=blob_name,
                cause=e,
            ) from e

        task_logger.info(
            "Uploaded %s as %s (%d bytes, %s, %s)",
            input.source_file,
            blob_name,
            stream.length,
            content_type,
            content_encoding,
        )

    return UploadBlobsOutput(source_file=input.source_file, uri=blob.url)
