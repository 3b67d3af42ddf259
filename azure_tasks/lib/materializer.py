"""File materialization for blob uploads and downloads.

Turns a local source file into a buffered byte stream ready for upload
(optionally re-encoded and gzip-compressed), and writes downloaded text to
disk with a deterministic policy for names that are already taken.

Example:
    >>> options = StreamOptions(compress=True, encoding="utf-8")
    >>> with build_upload_stream(SourceFile.from_path("orders.xml"), options) as stream:
    ...     container.upload_blob("orders.xml.gz", stream, length=stream.length)

    >>> write_text_to_file(content, "/data/in", "orders.xml", "utf-8", CollisionPolicy.RENAME)
    WrittenFile(file_name='orders(1).xml', directory='/data/in', full_path='/data/in/orders(1).xml')
"""

from __future__ import annotations

import codecs
import gzip
import io
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from azure_tasks.lib.cancellation import CancellationToken, check_cancelled
from azure_tasks.lib.errors import (
    DestinationExistsError,
    IOFailureError,
    InvalidOptionError,
    SourceNotFoundError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_ENCODING",
    "BufferedStream",
    "CollisionPolicy",
    "CompressedStream",
    "NameResolution",
    "ResolutionOutcome",
    "SourceFile",
    "StreamOptions",
    "WrittenFile",
    "build_upload_stream",
    "detect_source_encoding",
    "get_renamed_file_name",
    "resolve_destination",
    "resolve_destination_name",
    "resolve_encoding",
    "web_encoding_name",
    "write_text_to_file",
]

DEFAULT_ENCODING = "utf-8"


class CollisionPolicy(Enum):
    """What to do when the destination file name is already taken."""

    ERROR = "Error"
    RENAME = "Rename"
    OVERWRITE = "Overwrite"


class ResolutionOutcome(Enum):
    AVAILABLE = "available"
    RENAMED = "renamed"
    OVERWRITE = "overwrite"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class NameResolution:
    """Result of resolving a destination name against a directory."""

    name: str
    outcome: ResolutionOutcome

    @property
    def is_conflict(self) -> bool:
        return self.outcome is ResolutionOutcome.CONFLICT


@dataclass(frozen=True)
class SourceFile:
    """A local file captured at the moment it was inspected."""

    path: Path
    exists: bool
    length: int

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceFile":
        file_path = Path(path)
        if file_path.is_file():
            return cls(path=file_path, exists=True, length=file_path.stat().st_size)
        return cls(path=file_path, exists=False, length=0)

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class StreamOptions:
    """How a SourceFile becomes an upload stream.

    contents_only sends the file bytes untouched; otherwise the file is read
    as text (BOM-detected, utf-8 without one) and re-encoded with
    ``encoding``. compress gzips the result.
    """

    compress: bool = False
    contents_only: bool = False
    encoding: str = DEFAULT_ENCODING


@dataclass(frozen=True)
class WrittenFile:
    """Where write_text_to_file put the content."""

    file_name: str
    directory: str
    full_path: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "directory": self.directory,
            "full_path": self.full_path,
        }


class BufferedStream(io.BytesIO):
    """In-memory upload payload that knows its own length."""

    @property
    def length(self) -> int:
        return self.getbuffer().nbytes


class CompressedStream(BufferedStream):
    """Gzip-compressed upload payload."""

    def __init__(self, data: bytes, uncompressed_length: int) -> None:
        super().__init__(data)
        self.uncompressed_length = uncompressed_length


def resolve_encoding(name: Optional[str], default: str = DEFAULT_ENCODING) -> str:
    """Validate an encoding name and return its canonical codec name.

    Blank names fall back to ``default``. Accepts the spellings users
    type in task properties ("utf8", "UTF-8", "windows-1252", "latin1").

    Raises:
        InvalidOptionError: If Python has no codec for the name.
    """
    candidate = (name or "").strip() or default
    try:
        return codecs.lookup(candidate).name
    except LookupError as e:
        raise InvalidOptionError(
            f"Unsupported encoding '{candidate}'",
            option="encoding",
            value=candidate,
            cause=e,
        ) from e


def web_encoding_name(name: str) -> str:
    """Encoding name as it should appear in a Content-Encoding header."""
    codec = resolve_encoding(name)
    # The BOM variant is still utf-8 on the wire
    if codec == "utf-8-sig":
        return "utf-8"
    return codec


# utf-32 first: its little-endian BOM starts with the utf-16 one
_SOURCE_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def detect_source_encoding(raw: bytes) -> str:
    """Encoding of a source file from its byte order mark; utf-8 without one."""
    for bom, codec in _SOURCE_BOMS:
        if raw.startswith(bom):
            return codec
    return DEFAULT_ENCODING


def _decode_source(raw: bytes, path: Path) -> str:
    source_encoding = detect_source_encoding(raw)
    try:
        return raw.decode(source_encoding)
    except UnicodeDecodeError as e:
        raise InvalidOptionError(
            f"Source file {path} is not valid {source_encoding} text",
            option="encoding",
            value=source_encoding,
            cause=e,
            suggestion="Set contents_only to upload the file bytes unchanged.",
        ) from e


def build_upload_stream(
    source_file: SourceFile,
    options: StreamOptions,
    cancellation: Optional[CancellationToken] = None,
) -> BufferedStream:
    """Read a source file into a buffered stream ready for upload.

    The file handle is opened and closed inside this call; the returned
    stream only holds memory and is positioned at 0.

    Args:
        source_file: File to read
        options: Encoding and compression options
        cancellation: Optional cancellation token

    Returns:
        BufferedStream, or CompressedStream when options.compress is set

    Raises:
        SourceNotFoundError: The file does not exist
        InvalidOptionError: The source is not valid text, or the encoding is
            unknown or cannot represent it
        IOFailureError: Reading the file failed
    """
    if not source_file.exists:
        raise SourceNotFoundError(
            f"Source file {source_file.path} does not exist",
            path=str(source_file.path),
        )

    encoding = None if options.contents_only else resolve_encoding(options.encoding)
    check_cancelled(cancellation, "reading source file")

    try:
        with open(source_file.path, "rb") as handle:
            raw = handle.read()
    except FileNotFoundError as e:
        raise SourceNotFoundError(
            f"Source file {source_file.path} does not exist",
            path=str(source_file.path),
            cause=e,
        ) from e
    except OSError as e:
        raise IOFailureError(
            f"Failed to read source file {source_file.path}",
            path=str(source_file.path),
            cause=e,
        ) from e

    if encoding is None:
        payload = raw
    else:
        text = _decode_source(raw, source_file.path)
        try:
            payload = text.encode(encoding)
        except UnicodeEncodeError as e:
            raise InvalidOptionError(
                f"Source file {source_file.path} cannot be re-encoded as {encoding}",
                option="encoding",
                value=encoding,
                cause=e,
            ) from e

    if not options.compress:
        logger.debug("Buffered %d bytes from %s", len(payload), source_file.path)
        return BufferedStream(payload)

    check_cancelled(cancellation, "compressing source file")
    buffer = io.BytesIO()
    # mtime=0 keeps the output byte-identical for identical input
    with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as gz:
        gz.write(payload)
    compressed = buffer.getvalue()
    logger.debug(
        "Compressed %s from %d to %d bytes",
        source_file.path,
        len(payload),
        len(compressed),
    )
    return CompressedStream(compressed, uncompressed_length=len(payload))


def _renamed(file_name: str, index: int) -> str:
    stem, ext = os.path.splitext(file_name)
    return f"{stem}({index}){ext}"


def get_renamed_file_name(file_name: str, directory: Union[str, Path]) -> str:
    """Return the first free name in the sequence name, name(1), name(2), ...

    The extension stays at the end: ``report.txt`` becomes ``report(1).txt``,
    ``README`` becomes ``README(1)``.
    """
    folder = Path(directory)
    if not (folder / file_name).exists():
        return file_name

    index = 1
    while (folder / _renamed(file_name, index)).exists():
        index += 1
    return _renamed(file_name, index)


def resolve_destination(
    base_name: str,
    directory: Union[str, Path],
    policy: CollisionPolicy,
) -> NameResolution:
    """Resolve a destination name without raising on a conflict."""
    if policy is CollisionPolicy.OVERWRITE:
        return NameResolution(base_name, ResolutionOutcome.OVERWRITE)

    if not (Path(directory) / base_name).exists():
        return NameResolution(base_name, ResolutionOutcome.AVAILABLE)

    if policy is CollisionPolicy.ERROR:
        return NameResolution(base_name, ResolutionOutcome.CONFLICT)

    return NameResolution(
        get_renamed_file_name(base_name, directory), ResolutionOutcome.RENAMED
    )


def resolve_destination_name(
    base_name: str,
    directory: Union[str, Path],
    policy: CollisionPolicy,
) -> str:
    """Resolve the file name to write, applying the collision policy.

    Raises:
        DestinationExistsError: policy is ERROR and base_name is taken
    """
    resolution = resolve_destination(base_name, directory, policy)
    if resolution.is_conflict:
        raise DestinationExistsError(
            f"Destination file '{base_name}' already exists.",
            file_name=base_name,
            directory=str(directory),
        )
    return resolution.name


def write_text_to_file(
    content: str,
    directory: Union[str, Path],
    base_name: str,
    encoding: str,
    policy: CollisionPolicy,
) -> WrittenFile:
    """Write text into directory under a name resolved by the collision policy.

    The text is encoded up front and written as bytes, so line endings are
    kept exactly and an encoding failure never leaves a partial file.

    Raises:
        DestinationExistsError: policy is ERROR and base_name is taken
        InvalidOptionError: encoding is unknown or cannot represent content
        IOFailureError: the write failed
    """
    codec = resolve_encoding(encoding)
    file_name = resolve_destination_name(base_name, directory, policy)
    full_path = Path(directory) / file_name

    try:
        data = content.encode(codec)
    except UnicodeEncodeError as e:
        raise InvalidOptionError(
            f"Content cannot be written as {codec}",
            option="encoding",
            value=codec,
            cause=e,
        ) from e

    try:
        with open(full_path, "wb") as handle:
            handle.write(data)
    except OSError as e:
        raise IOFailureError(
            f"Failed to write {full_path}",
            path=str(full_path),
            cause=e,
        ) from e

    logger.info("Wrote %d characters to %s", len(content), full_path)
    return WrittenFile(
        file_name=full_path.name,
        directory=str(full_path.parent),
        full_path=str(full_path),
    )
