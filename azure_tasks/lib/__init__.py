"""Task library modules.

This package contains the Azure Storage tasks and the helpers they share:
file materialization, client construction, errors and logging.
"""

from azure_tasks.lib.blob_tasks import (
    delete_blob,
    delete_container,
    download_blob,
    list_blobs,
    read_blob_content,
    upload_file,
)
from azure_tasks.lib.cancellation import CancellationToken
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
    OAuthProperties,
    QueueConnectionProperties,
    QueueGetLengthResult,
    QueueMessageProperties,
    QueueOperationResult,
    QueueOptions,
    QueuePeekMessageResult,
    SnapshotDeleteOption,
    UploadBlobsDestinationProperties,
    UploadBlobsInput,
    UploadBlobsOutput,
)
from azure_tasks.lib.errors import (
    DestinationExistsError,
    InvalidOptionError,
    IOFailureError,
    QueueOperationError,
    SourceNotFoundError,
    StorageOperationError,
    TaskCancelledError,
    TaskError,
    TokenAcquisitionError,
)
from azure_tasks.lib.materializer import (
    CollisionPolicy,
    NameResolution,
    SourceFile,
    StreamOptions,
    build_upload_stream,
    get_renamed_file_name,
    resolve_destination,
    resolve_destination_name,
    write_text_to_file,
)
from azure_tasks.lib.oauth_tasks import get_access_token
from azure_tasks.lib.queue_tasks import (
    create_queue,
    delete_message,
    delete_queue,
    get_queue_length,
    insert_message,
    peek_next_message,
)

__all__ = [
    # Blob tasks
    "list_blobs",
    "download_blob",
    "read_blob_content",
    "delete_blob",
    "delete_container",
    "upload_file",
    # Queue tasks
    "create_queue",
    "delete_queue",
    "get_queue_length",
    "insert_message",
    "peek_next_message",
    "delete_message",
    # OAuth
    "get_access_token",
    # Materializer
    "CollisionPolicy",
    "NameResolution",
    "SourceFile",
    "StreamOptions",
    "build_upload_stream",
    "get_renamed_file_name",
    "resolve_destination",
    "resolve_destination_name",
    "write_text_to_file",
    # Properties and outputs
    "BlobData",
    "BlobKind",
    "BlobType",
    "DeleteBlobProperties",
    "DeleteBlobsBlobConnectionProperties",
    "DeleteBlobsContainerConnectionProperties",
    "DeleteBlobsContainerProperties",
    "DeleteBlobsOutput",
    "DownloadBlobDestinationFileProperties",
    "DownloadBlobOutput",
    "DownloadBlobReadContentOutput",
    "DownloadBlobSourceProperties",
    "ListBlobsOutput",
    "ListBlobsSourceProperties",
    "OAuthProperties",
    "QueueConnectionProperties",
    "QueueGetLengthResult",
    "QueueMessageProperties",
    "QueueOperationResult",
    "QueueOptions",
    "QueuePeekMessageResult",
    "SnapshotDeleteOption",
    "UploadBlobsDestinationProperties",
    "UploadBlobsInput",
    "UploadBlobsOutput",
    # Errors
    "TaskError",
    "SourceNotFoundError",
    "DestinationExistsError",
    "IOFailureError",
    "InvalidOptionError",
    "StorageOperationError",
    "QueueOperationError",
    "TokenAcquisitionError",
    "TaskCancelledError",
    # Cancellation
    "CancellationToken",
]
