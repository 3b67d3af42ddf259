"""Structured exception hierarchy for Azure storage tasks.

Provides specific exception types for common failure modes,
with rich context for debugging and troubleshooting.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "TaskError",
    "SourceNotFoundError",
    "DestinationExistsError",
    "IOFailureError",
    "InvalidOptionError",
    "StorageOperationError",
    "QueueOperationError",
    "TokenAcquisitionError",
    "TaskCancelledError",
]


class TaskError(Exception):
    """Base exception for all task errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        task: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.task = task
        self.cause = cause
        self.details = details or {}
        self.suggestion = suggestion

        if cause is not None:
            self.details["cause"] = str(cause)
            self.details["cause_type"] = type(cause).__name__

        # Build full message
        parts = [message]

        if task:
            parts.insert(0, f"[{task}]")

        if self.details:
            detail_lines = [f"  {k}: {v}" for k, v in self.details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "task": self.task,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class SourceNotFoundError(TaskError):
    """Source file not found.

    Raised before any storage interaction when an upload source is missing.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path

        details = kwargs.pop("details", {})
        if path:
            details["path"] = path

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = "Check the source file path and that the file is readable."

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class DestinationExistsError(TaskError):
    """Destination file already exists and the collision policy is Error."""

    def __init__(
        self,
        message: str,
        *,
        file_name: Optional[str] = None,
        directory: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.file_name = file_name
        self.directory = directory

        details = kwargs.pop("details", {})
        if file_name:
            details["file_name"] = file_name
        if directory:
            details["directory"] = directory

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = "Use the Rename or Overwrite policy, or clear the destination."

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class IOFailureError(TaskError):
    """Local filesystem read or write failed."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path

        details = kwargs.pop("details", {})
        if path:
            details["path"] = path

        super().__init__(message, details=details, **kwargs)


class InvalidOptionError(TaskError):
    """A task option has an unsupported value (e.g. an unknown encoding)."""

    def __init__(
        self,
        message: str,
        *,
        option: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.option = option
        self.value = value

        details = kwargs.pop("details", {})
        if option:
            details["option"] = option
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class StorageOperationError(TaskError):
    """A blob storage call failed."""

    def __init__(
        self,
        message: str,
        *,
        container: Optional[str] = None,
        blob: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.container = container
        self.blob = blob

        details = kwargs.pop("details", {})
        if container:
            details["container"] = container
        if blob:
            details["blob"] = blob

        super().__init__(message, details=details, **kwargs)


class QueueOperationError(TaskError):
    """A queue storage call failed."""

    def __init__(
        self,
        message: str,
        *,
        queue: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.queue = queue

        details = kwargs.pop("details", {})
        if queue:
            details["queue"] = queue

        super().__init__(message, details=details, **kwargs)


class TokenAcquisitionError(TaskError):
    """The identity provider did not return an access token."""

    def __init__(
        self,
        message: str,
        *,
        authority: Optional[str] = None,
        resource: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.authority = authority
        self.resource = resource

        details = kwargs.pop("details", {})
        if authority:
            details["authority"] = authority
        if resource:
            details["resource"] = resource

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = "Check the client id, secret and tenant in the authority URL."

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class TaskCancelledError(TaskError):
    """The caller cancelled the task before it completed."""
