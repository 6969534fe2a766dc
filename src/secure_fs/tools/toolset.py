"""Base class for server toolsets.

This module provides the abstract base class for creating toolsets and the
``tool_operation`` wrapper that every tool goes through. Toolsets encapsulate
related tools with shared dependencies, avoiding global state and enabling
dependency injection for testing.
"""

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from secure_fs.config import ServerSettings
from secure_fs.exceptions import FileSystemError
from secure_fs.metrics import OperationMetrics
from secure_fs.utils.responses import (
    create_error_response,
    create_success_response,
    error_response_from_exception,
)

logger = logging.getLogger(__name__)


def _os_error_response(name: str, error: OSError) -> dict:
    target = error.filename or ""
    details = {"path": str(target)} if target else None
    if isinstance(error, PermissionError):
        return create_error_response("PERMISSION_DENIED", f"Permission denied: {target}", details)
    if isinstance(error, FileNotFoundError):
        return create_error_response("PATH_NOT_FOUND", f"Path not found: {target}", details)
    if isinstance(error, NotADirectoryError):
        return create_error_response("NOT_A_DIRECTORY", f"Path is not a directory: {target}", details)
    if isinstance(error, IsADirectoryError):
        return create_error_response("NOT_A_FILE", f"Path is not a file: {target}", details)
    return create_error_response("OS_ERROR", f"OS error in {name}: {error.strerror or error}", details)


def tool_operation(
    name: str | None = None,
) -> Callable[[Callable[..., Awaitable[dict]]], Callable[..., Awaitable[dict]]]:
    """Decorate an async toolset method with metrics and error conversion.

    The wrapped tool never raises: FileSystemError, OSError and ValueError are
    turned into structured error responses. Every call is counted and timed
    in ``self.metrics``; any unsuccessful response is recorded as an error.

    Args:
        name: Metric name, defaults to the function name

    Example:
        >>> class MyTools(Toolset):
        ...     @tool_operation()
        ...     async def my_tool(self, path: str) -> dict:
        ...         return self._create_success_response(result=path)
    """

    def decorator(func: Callable[..., Awaitable[dict]]) -> Callable[..., Awaitable[dict]]:
        operation = name or func.__name__

        @functools.wraps(func)
        async def wrapper(self: "Toolset", *args: Any, **kwargs: Any) -> dict:
            finish = self.metrics.start_operation(operation)
            try:
                response = await func(self, *args, **kwargs)
            except FileSystemError as e:
                logger.error(f"Error in {operation}: {e.to_dict()}")
                response = error_response_from_exception(e)
            except OSError as e:
                logger.error(f"OS error in {operation}: {e}")
                response = _os_error_response(operation, e)
            except ValueError as e:
                # e.g. embedded NUL bytes rejected by os functions
                logger.error(f"Invalid arguments in {operation}: {e}")
                response = create_error_response(
                    "INVALID_ARGUMENTS", f"Invalid arguments for {operation}: {e}"
                )
            finally:
                finish()

            if not response.get("success", False):
                self.metrics.record_error(operation)
            return response

        return wrapper

    return decorator


class Toolset(ABC):
    """Base class for server toolsets.

    Each toolset receives the ServerSettings plus the shared OperationMetrics,
    making it easy to build independent instances in tests.

    Example:
        >>> class MyTools(Toolset):
        ...     def get_tools(self):
        ...         return [self.my_tool]
    """

    def __init__(self, settings: ServerSettings, metrics: OperationMetrics | None = None):
        """Initialize toolset with configuration.

        Args:
            settings: Server configuration
            metrics: Shared operation metrics; a private instance is created if omitted
        """
        self.settings = settings
        self.metrics = metrics if metrics is not None else OperationMetrics()

    @abstractmethod
    def get_tools(self) -> list[Callable]:
        """Get list of tool functions.

        Tools should be async callables with proper type hints and docstrings,
        which the MCP server turns into tool schemas and descriptions.

        Returns:
            List of callable tool functions
        """
        pass

    def _create_success_response(self, result: Any, message: str = "") -> dict:
        """Create standardized success response."""
        return create_success_response(result, message)

    def _create_error_response(
        self, error: str, message: str, details: dict[str, Any] | None = None
    ) -> dict:
        """Create standardized error response.

        Tools should use this for expected failures rather than raising, so
        the client gets a structured answer.
        """
        return create_error_response(error, message, details)
