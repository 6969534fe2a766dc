"""Tool implementations for the secure filesystem server."""

from secure_fs.tools.filesystem import FileSystemTools
from secure_fs.tools.toolset import Toolset, tool_operation

__all__ = ["FileSystemTools", "Toolset", "tool_operation"]
