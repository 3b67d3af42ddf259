"""Task property models and task outputs.

Properties are pydantic models so hosts can build them from YAML/JSON
and get field-level validation errors. Outputs are plain dataclasses
with ``to_dict()`` for serialization.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from azure_tasks.lib.materializer import CollisionPolicy

__all__ = [
    # Enums
    "BlobType",
    "BlobKind",
    "SnapshotDeleteOption",
    # Blob properties
    "ListBlobsSourceProperties",
    "DownloadBlobSourceProperties",
    "DownloadBlobDestinationFileProperties",
    "DeleteBlobProperties",
    "DeleteBlobsBlobConnectionProperties",
    "DeleteBlobsContainerProperties",
    "DeleteBlobsContainerConnectionProperties",
    "UploadBlobsInput",
    "UploadBlobsDestinationProperties",
    # Queue properties
    "QueueConnectionProperties",
    "QueueMessageProperties",
    "QueueOptions",
    # OAuth
    "OAuthProperties",
    # Outputs
    "BlobData",
    "ListBlobsOutput",
    "DownloadBlobOutput",
    "DownloadBlobReadContentOutput",
    "DeleteBlobsOutput",
    "UploadBlobsOutput",
    "QueueOperationResult",
    "QueueGetLengthResult",
    "QueuePeekMessageResult",
]

DEVELOPMENT_STORAGE = "UseDevelopmentStorage=true"


class BlobType(Enum):
    """Blob type a task reads or writes."""

    APPEND = "Append"
    BLOCK = "Block"
    PAGE = "Page"


class BlobKind(Enum):
    """Kind of an entry returned by a container listing."""

    BLOCK = "Block"
    APPEND = "Append"
    PAGE = "Page"
    DIRECTORY = "Directory"


class SnapshotDeleteOption(Enum):
    """How blob snapshots are treated when the blob is deleted."""

    NONE = "None"
    INCLUDE_SNAPSHOTS = "IncludeSnapshots"
    DELETE_SNAPSHOTS_ONLY = "DeleteSnapshotsOnly"


class _Properties(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=False)


# ============================================
# Blob task properties
# ============================================


class ListBlobsSourceProperties(_Properties):
    connection_string: str = Field(default=DEVELOPMENT_STORAGE, min_length=1)
    container_name: str = Field(..., min_length=1)
    flat_blob_listing: bool = Field(
        default=True,
        description="List every blob (True) or one virtual directory level (False)",
    )
    prefix: Optional[str] = Field(default=None, description="Blob name prefix filter")


class DownloadBlobSourceProperties(_Properties):
    connection_string: str = Field(default=DEVELOPMENT_STORAGE, min_length=1)
    container_name: str = Field(..., min_length=1)
    blob_name: str = Field(..., min_length=1)
    blob_type: BlobType = BlobType.BLOCK
    encoding: Optional[str] = Field(
        default="utf-8",
        description="Empty uses the blob's Content-Encoding property",
    )


class DownloadBlobDestinationFileProperties(_Properties):
    directory: str = Field(..., min_length=1)
    file_exists_operation: CollisionPolicy = CollisionPolicy.ERROR


class DeleteBlobsContainerProperties(_Properties):
    container_name: str = Field(..., min_length=1)


class DeleteBlobsContainerConnectionProperties(_Properties):
    connection_string: str = Field(default=DEVELOPMENT_STORAGE, min_length=1)


class DeleteBlobsBlobConnectionProperties(_Properties):
    connection_string: str = Field(default=DEVELOPMENT_STORAGE, min_length=1)
    container_name: str = Field(..., min_length=1)


class DeleteBlobProperties(_Properties):
    blob_name: str = Field(..., min_length=1)
    verify_etag_when_deleting: Optional[str] = Field(
        default=None,
        description="Delete only if the blob ETag matches; empty skips the check",
    )
    blob_type: BlobType = BlobType.BLOCK
    snapshot_delete_option: SnapshotDeleteOption = SnapshotDeleteOption.INCLUDE_SNAPSHOTS


class UploadBlobsInput(_Properties):
    source_file: str = Field(..., min_length=1)
    contents_only: bool = Field(
        default=False, description="Send file bytes as-is instead of re-encoding text"
    )
    compress: bool = Field(default=False, description="Gzip the payload")


class UploadBlobsDestinationProperties(_Properties):
    connection_string: str = Field(default=DEVELOPMENT_STORAGE, min_length=1)
    container_name: str = Field(..., min_length=3, max_length=63)
    create_container_if_it_does_not_exist: bool = False
    blob_type: BlobType = BlobType.BLOCK
    rename_to: Optional[str] = None
    content_type: Optional[str] = Field(
        default=None, description="Forced Content-Type; empty guesses from the file name"
    )
    file_encoding: Optional[str] = Field(
        default=None, description="Text encoding; empty means utf-8"
    )
    overwrite: bool = True
    parallel_operations: int = Field(default=64, ge=1, le=512)

    @field_validator("container_name")
    @classmethod
    def validate_container_name(cls, v: str) -> str:
        """Container names are lowercase alphanumerics and dashes, no leading/trailing dash."""
        allowed = set("abcdefghijklmnopqrstuvwxyz0123456789-")
        if not set(v) <= allowed or v.startswith("-") or v.endswith("-") or "--" in v:
            raise ValueError(
                "container_name must be lowercase letters, digits and single dashes, "
                "and cannot start or end with a dash"
            )
        return v


# ============================================
# Queue task properties
# ============================================


class QueueConnectionProperties(_Properties):
    storage_connection_string: str = Field(default=DEVELOPMENT_STORAGE, min_length=1)
    queue_name: str = Field(..., min_length=3, max_length=63)

    @field_validator("queue_name")
    @classmethod
    def validate_queue_name(cls, v: str) -> str:
        """Queue names start with a letter or digit and contain only letters, digits and dashes."""
        if not v[0].isalnum() or not all(c.isalnum() or c == "-" for c in v):
            raise ValueError(
                "queue_name must start with a letter or number and contain only "
                "letters, numbers and dashes"
            )
        return v


class QueueMessageProperties(_Properties):
    content: str
    create_queue: bool = Field(default=True, description="Create the queue if missing")


class QueueOptions(_Properties):
    throw_error_on_failure: bool = Field(
        default=True,
        description="Raise on failure instead of returning success=False with info",
    )


# ============================================
# OAuth
# ============================================


class OAuthProperties(_Properties):
    auth_context_url: str = Field(
        ...,
        min_length=1,
        description="Authority URL including tenant, e.g. https://login.microsoftonline.com/<tenant>",
    )
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1, repr=False)
    resource: str = Field(..., min_length=1, description="Resource (audience) the token is for")


# ============================================
# Outputs
# ============================================


@dataclass
class _Output:
    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data


@dataclass
class BlobData(_Output):
    blob_type: BlobKind
    uri: str
    name: str
    etag: Optional[str] = None


@dataclass
class ListBlobsOutput:
    blobs: List[BlobData] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"blobs": [blob.to_dict() for blob in self.blobs]}


@dataclass
class DownloadBlobOutput(_Output):
    file_name: str
    directory: str
    full_path: str


@dataclass
class DownloadBlobReadContentOutput(_Output):
    content: str


@dataclass
class DeleteBlobsOutput(_Output):
    success: bool


@dataclass
class UploadBlobsOutput(_Output):
    source_file: str
    uri: str


@dataclass
class QueueOperationResult(_Output):
    success: bool
    info: Optional[str] = None


@dataclass
class QueueGetLengthResult(_Output):
    success: bool
    info: Optional[str] = None
    count: int = 0


@dataclass
class QueuePeekMessageResult(_Output):
    success: bool
    info: Optional[str] = None
    content: Optional[str] = None
