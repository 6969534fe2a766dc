"""Utility modules for secure_fs."""

from secure_fs.utils.responses import (
    create_error_response,
    create_success_response,
    error_response_from_exception,
)

__all__ = [
    "create_error_response",
    "create_success_response",
    "error_response_from_exception",
]
