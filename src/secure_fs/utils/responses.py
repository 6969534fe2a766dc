"""Shared response helper functions for tools.

Every tool returns one of these two shapes so MCP clients can handle results
uniformly and never receive a raw traceback.
"""

from typing import Any

from secure_fs.exceptions import FileSystemError


def create_success_response(result: Any, message: str = "") -> dict:
    """Create standardized success response.

    Args:
        result: Operation result (can be any JSON-serializable type)
        message: Optional success message for logging/display

    Returns:
        Structured response dict with success=True

    Example:
        >>> create_success_response(result=["a.txt"], message="Listed 1 entry")
        {'success': True, 'result': ['a.txt'], 'message': 'Listed 1 entry'}
    """
    return {
        "success": True,
        "result": result,
        "message": message,
    }


def create_error_response(
    error: str, message: str, details: dict[str, Any] | None = None
) -> dict:
    """Create standardized error response.

    Args:
        error: Machine-readable error code (e.g., "ACCESS_DENIED")
        message: Human-friendly error message
        details: Optional structured context such as the offending path

    Returns:
        Structured response dict with success=False

    Example:
        >>> create_error_response("PATH_NOT_FOUND", "Path not found: /srv/x")
        {'success': False, 'error': 'PATH_NOT_FOUND', 'message': 'Path not found: /srv/x'}
    """
    response = {
        "success": False,
        "error": error,
        "message": message,
    }
    if details:
        response["details"] = details
    return response


def error_response_from_exception(error: FileSystemError) -> dict:
    """Convert a FileSystemError into a structured error response."""
    details: dict[str, Any] = {}
    if error.path is not None:
        details["path"] = error.path
    details.update(error.details)
    return create_error_response(error.code, error.message, details)
