"""Custom exceptions for filesystem errors.

This module provides a hierarchy of exception classes used by the sandbox,
the patch engine and the filesystem tools. Every error carries a
machine-readable code, the offending path and extra metadata so it can be
reported to the client as a structured denial instead of crashing the server.
"""

from typing import Any


class FileSystemError(Exception):
    """Base exception for all filesystem errors.

    Attributes:
        code: Machine-readable error code (e.g. "ACCESS_DENIED")
        path: Path that caused the error (optional)
        details: Additional error context (optional)
    """

    code = "FILESYSTEM_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize FileSystemError.

        Args:
            message: Human-friendly error message
            code: Machine-readable error code, defaults to the class code
            path: Path that caused the error
            details: Additional error context
        """
        if code is not None:
            self.code = code
        self.path = path
        self.details = details or {}
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dict for logging and structured responses."""
        data: dict[str, Any] = {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "path": self.path,
        }
        data.update(self.details)
        return data


class AccessDeniedError(FileSystemError):
    """Path (or its real/parent path) falls outside every allowed directory."""

    code = "ACCESS_DENIED"

    def __init__(
        self,
        path: str,
        message: str | None = None,
        allowed_directories: list[str] | tuple[str, ...] | None = None,
    ):
        details = {}
        if allowed_directories is not None:
            details["allowed_directories"] = list(allowed_directories)
        super().__init__(
            message or f"Access denied - path outside allowed directories: {path}",
            path=path,
            details=details,
        )


class PathNotFoundError(FileSystemError):
    """Neither the path nor its parent directory exists."""

    code = "PATH_NOT_FOUND"

    def __init__(self, path: str, message: str | None = None):
        super().__init__(message or f"Path not found: {path}", path=path)


class InvalidArgumentsError(FileSystemError):
    """Structurally malformed tool input, e.g. an edit with empty old_text."""

    code = "INVALID_ARGUMENTS"

    def __init__(self, tool_name: str, details: Any = None):
        self.tool_name = tool_name
        message = f"Invalid arguments for {tool_name}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message, details={"tool": tool_name, "reason": details})


class EditNotFoundError(FileSystemError):
    """An edit's old_text has no exact match in the current document."""

    code = "EDIT_NOT_FOUND"

    def __init__(self, old_text: str, index: int, path: str | None = None):
        self.old_text = old_text
        self.index = index
        super().__init__(
            f"Could not find exact match for edit {index}:\n{old_text}",
            path=path,
            details={"edit_index": index},
        )


class FileSizeExceededError(FileSystemError):
    """Content or an existing file exceeds the configured byte ceiling."""

    code = "FILE_SIZE_EXCEEDED"

    def __init__(self, path: str, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File size exceeds limit: {size} > {max_size} bytes",
            path=path,
            details={"size": size, "max_size": max_size},
        )
