"""Filesystem tools for safe, sandboxed file operations.

This module exposes the MCP tool surface of the server. Every path argument
is proven to lie inside an allowed directory by :class:`PathSandbox` before
any I/O happens.

Key Features:
- Allow-list sandboxing with symlink and parent-directory checks
- Text and base64 reads and writes with a byte ceiling
- Exact-text edits with indentation preservation and unified diffs
- Directory listing, recursive trees and name search
- Per-operation metrics
"""

import asyncio
import base64
import binascii
import fnmatch
import logging
import os
import shutil
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field

from secure_fs.config import ServerSettings
from secure_fs.edits import EditOperation, coerce_edits, edit_text_file
from secure_fs.exceptions import FileSizeExceededError, FileSystemError, InvalidArgumentsError
from secure_fs.metrics import OperationMetrics
from secure_fs.sandbox import (
    DenialKind,
    PathDenial,
    PathSandbox,
    PathValidationCache,
    normalize_path,
)
from secure_fs.tools.toolset import Toolset, tool_operation

logger = logging.getLogger(__name__)

Encoding = Literal["utf-8", "utf8", "base64"]
VALID_ENCODINGS = ("utf-8", "utf8", "base64")
DEFAULT_MAX_SEARCH_RESULTS = 1000


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    """Directory entries, directories first, then files, each alphabetical.

    Symlinks are classified by the link itself, never by their target.
    """
    with os.scandir(directory) as it:
        entries = list(it)
    entries.sort(key=lambda e: (not e.is_dir(follow_symlinks=False), e.name))
    return entries


def _exclude_glob(pattern: str) -> str:
    return pattern if "*" in pattern else f"*{pattern}*"


class FileSystemTools(Toolset):
    """Sandboxed filesystem tools.

    Security guarantees:
    - All paths must resolve inside a configured allowed directory
    - Symlinks whose targets escape every allowed directory are rejected
    - New files and directories require a real, allowed parent directory
    - Mutating tools can be disabled with ``security.writes_enabled``
    - Reads and writes are capped at ``security.max_file_size`` bytes

    Example:
        >>> settings = ServerSettings(allowed_directories=["/srv/data"])
        >>> tools = FileSystemTools(settings)
        >>> result = await tools.list_directory("/srv/data")
        >>> print(result["result"]["listing"])
        [DIR] docs
        [FILE] notes.txt
    """

    def __init__(
        self,
        settings: ServerSettings,
        sandbox: PathSandbox | None = None,
        metrics: OperationMetrics | None = None,
    ):
        """Initialize FileSystemTools.

        Args:
            settings: Server configuration with allowed directories and limits
            sandbox: Shared sandbox; built from settings when omitted
            metrics: Shared operation metrics
        """
        super().__init__(settings, metrics)
        if sandbox is None:
            cache = None
            if settings.cache.enabled:
                cache = PathValidationCache(
                    max_size=settings.cache.max_size, ttl_seconds=settings.cache.ttl_seconds
                )
            sandbox = PathSandbox(
                settings.allowed_directories,
                cache=cache,
                allow_symlinks=settings.security.allow_symlinks,
            )
        self.sandbox = sandbox

    def get_tools(self) -> list:
        """Get list of filesystem tools.

        Returns:
            List of filesystem tool functions
        """
        return [
            self.read_file,
            self.read_multiple_files,
            self.write_file,
            self.edit_file,
            self.create_directory,
            self.list_directory,
            self.directory_tree,
            self.move_file,
            self.search_files,
            self.get_file_info,
            self.list_allowed_directories,
            self.get_metrics,
        ]

    @property
    def max_file_size(self) -> int:
        return self.settings.security.max_file_size

    def _resolve_path(self, path: str) -> dict | Path:
        """Validate a client path through the sandbox.

        All filesystem tools MUST call this before any filesystem access.

        Returns:
            Validated Path if allowed, or error response dict if denied

        Example:
            >>> resolved = self._resolve_path("/srv/data/main.py")
            >>> if isinstance(resolved, dict):
            ...     return resolved  # Error response
        """
        result = self.sandbox.validate(path)
        if isinstance(result, PathDenial):
            return self._denial_response(result)
        return result

    def _denial_response(self, denial: PathDenial) -> dict:
        return self._create_error_response(
            error=denial.kind.value, message=denial.message, details=denial.to_details()
        )

    def _require_file(self, resolved: Path, path: str) -> dict | None:
        if not resolved.exists():
            return self._create_error_response(
                "PATH_NOT_FOUND", f"Path not found: {path}", {"path": str(resolved)}
            )
        if not resolved.is_file():
            return self._create_error_response(
                "NOT_A_FILE", f"Path is not a file: {path}", {"path": str(resolved)}
            )
        return None

    def _require_directory(self, resolved: Path, path: str) -> dict | None:
        if not resolved.exists():
            return self._create_error_response(
                "PATH_NOT_FOUND", f"Path not found: {path}", {"path": str(resolved)}
            )
        if not resolved.is_dir():
            return self._create_error_response(
                "NOT_A_DIRECTORY", f"Path is not a directory: {path}", {"path": str(resolved)}
            )
        return None

    def _writes_disabled(self, tool_name: str) -> dict | None:
        if self.settings.security.writes_enabled:
            return None
        logger.warning(f"Refused {tool_name}: writes are disabled")
        return self._create_error_response(
            error="WRITES_DISABLED",
            message=f"{tool_name} is not available: writes are disabled in this server",
        )

    def _check_encoding(self, tool_name: str, encoding: str) -> None:
        if encoding not in VALID_ENCODINGS:
            raise InvalidArgumentsError(
                tool_name, f"unsupported encoding {encoding!r}, expected one of {VALID_ENCODINGS}"
            )

    def _check_file_size(self, path: Path) -> os.stat_result:
        stats = path.stat()
        if self.max_file_size > 0 and stats.st_size > self.max_file_size:
            logger.warning(f"File size limit exceeded: {path} ({stats.st_size} > {self.max_file_size})")
            raise FileSizeExceededError(str(path), stats.st_size, self.max_file_size)
        return stats

    def _read_validated(self, path: Path, encoding: str) -> str:
        """Read an already validated file in the requested encoding."""
        self._check_file_size(path)
        if encoding == "base64":
            return base64.b64encode(path.read_bytes()).decode("ascii")
        try:
            with open(path, encoding="utf-8", newline="") as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise InvalidArgumentsError(
                "read_file", f"{path} is not valid UTF-8 text, read it with encoding='base64'"
            ) from e

    @tool_operation()
    async def read_file(
        self,
        path: Annotated[str, Field(description="Path to the file to read")],
        encoding: Annotated[Encoding, Field(description="File encoding: utf-8 or base64")] = "utf-8",
    ) -> dict:
        """Read the complete contents of a file.

        Binary files can be read with encoding="base64". Files larger than the
        configured size limit are refused.

        Returns:
            Success response with {"path", "content", "encoding", "size"}
        """
        self._check_encoding("read_file", encoding)
        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved

        if error := self._require_file(resolved, path):
            return error

        content = self._read_validated(resolved, encoding)
        logger.debug(f"Successfully read file: {resolved}")
        return self._create_success_response(
            result={
                "path": str(resolved),
                "content": content,
                "encoding": encoding,
                "size": resolved.stat().st_size,
            },
            message=f"Read {path}",
        )

    def _read_one(self, path: str, encoding: str) -> dict[str, Any]:
        resolved = self.sandbox.validate(path)
        if isinstance(resolved, PathDenial):
            return {"path": path, "success": False, "error": resolved.kind.value, "message": resolved.message}
        if error := self._require_file(resolved, path):
            return {"path": path, "success": False, "error": error["error"], "message": error["message"]}
        try:
            content = self._read_validated(resolved, encoding)
        except FileSystemError as e:
            return {"path": path, "success": False, "error": e.code, "message": e.message}
        except OSError as e:
            code = "PERMISSION_DENIED" if isinstance(e, PermissionError) else "OS_ERROR"
            return {"path": path, "success": False, "error": code, "message": str(e)}
        except ValueError as e:
            return {"path": path, "success": False, "error": "INVALID_ARGUMENTS", "message": str(e)}
        return {"path": path, "success": True, "content": content}

    @tool_operation()
    async def read_multiple_files(
        self,
        paths: Annotated[list[str], Field(description="List of file paths to read")],
        encoding: Annotated[Encoding, Field(description="File encoding: utf-8 or base64")] = "utf-8",
    ) -> dict:
        """Read several files at once.

        Files are read concurrently. A failure on one path is reported in its
        own entry and never aborts the others.

        Returns:
            Success response with {"files": [{"path", "success", "content" | "error", "message"}]}
        """
        self._check_encoding("read_multiple_files", encoding)
        results = await asyncio.gather(
            *(asyncio.to_thread(self._read_one, path, encoding) for path in paths)
        )
        failed = sum(1 for r in results if not r["success"])
        logger.debug(f"Read {len(results) - failed} of {len(results)} files")
        return self._create_success_response(
            result={"files": list(results)},
            message=f"Read {len(results) - failed} of {len(results)} files",
        )

    @tool_operation()
    async def write_file(
        self,
        path: Annotated[str, Field(description="Path where to write the file")],
        content: Annotated[str, Field(description="Content to write to the file")],
        encoding: Annotated[Encoding, Field(description="Content encoding: utf-8 or base64")] = "utf-8",
    ) -> dict:
        """Create a new file or completely overwrite an existing file.

        The parent directory must already exist inside an allowed directory.
        With encoding="base64" the content is decoded before writing.

        Returns:
            Success response with {"path", "size"}
        """
        if denied := self._writes_disabled("write_file"):
            return denied
        self._check_encoding("write_file", encoding)

        if encoding == "base64":
            try:
                data = base64.b64decode(content, validate=True)
            except binascii.Error as e:
                raise InvalidArgumentsError("write_file", f"content is not valid base64: {e}") from e
        else:
            data = content.encode("utf-8")

        if self.max_file_size > 0 and len(data) > self.max_file_size:
            raise FileSizeExceededError(path, len(data), self.max_file_size)

        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved
        if resolved.is_dir():
            return self._create_error_response(
                "NOT_A_FILE", f"Path is a directory: {path}", {"path": str(resolved)}
            )

        resolved.write_bytes(data)
        logger.debug(f"Successfully wrote to file: {resolved}")
        return self._create_success_response(
            result={"path": str(resolved), "size": len(data)},
            message=f"Successfully wrote to {path}",
        )

    @tool_operation()
    async def edit_file(
        self,
        path: Annotated[str, Field(description="Path to the file to edit")],
        edits: Annotated[
            list[EditOperation], Field(description="List of edit operations to perform, in order")
        ],
        dry_run: Annotated[
            bool, Field(description="Preview changes as a git-style diff without writing")
        ] = False,
    ) -> dict:
        """Make line-based edits to a text file.

        Each edit replaces an exact sequence of lines with new content, and
        re-indents the replacement to match the replaced block. If any edit
        cannot be found the file is left untouched.

        Returns:
            Success response with {"path", "diff", "changed", "edits_applied", "dry_run"}
        """
        operations = coerce_edits(edits)
        if not dry_run and (denied := self._writes_disabled("edit_file")):
            return denied

        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved
        if error := self._require_file(resolved, path):
            return error

        result = edit_text_file(resolved, operations, dry_run=dry_run, max_size=self.max_file_size)
        message = result.message
        if dry_run and result.changed:
            message = f"{message} (dry run, file not modified)"
        return self._create_success_response(
            result={
                "path": str(resolved),
                "diff": result.diff,
                "changed": result.changed,
                "edits_applied": result.edits_applied,
                "dry_run": dry_run,
            },
            message=message,
        )

    @tool_operation()
    async def create_directory(
        self,
        path: Annotated[str, Field(description="Path of the directory to create")],
    ) -> dict:
        """Create a directory, including any missing parents.

        Succeeds silently if the directory already exists. Every level that
        has to be created is validated against the allowed directories first.

        Returns:
            Success response with {"path", "created"}
        """
        if denied := self._writes_disabled("create_directory"):
            return denied

        # Climb until a level validates; missing levels are created top-down.
        missing: list[str] = []
        current = normalize_path(path)
        while True:
            result = self.sandbox.validate(current)
            if isinstance(result, Path):
                break
            if result.kind is DenialKind.ACCESS_DENIED:
                return self._denial_response(result)
            parent = os.path.dirname(current)
            if parent == current:
                return self._denial_response(result)
            missing.append(current)
            current = parent

        created: list[str] = []
        if result.exists():
            if not result.is_dir():
                return self._create_error_response(
                    "NOT_A_DIRECTORY",
                    f"Path exists and is not a directory: {current}",
                    {"path": str(result)},
                )
        else:
            result.mkdir()
            created.append(str(result))

        for level in reversed(missing):
            validated = self._resolve_path(level)
            if isinstance(validated, dict):
                return validated
            validated.mkdir(exist_ok=True)
            created.append(str(validated))

        final = self._resolve_path(path)
        if isinstance(final, dict):
            return final
        logger.debug(f"Created directory: {final}")
        return self._create_success_response(
            result={"path": str(final), "created": created},
            message=f"Successfully created directory {path}",
        )

    @tool_operation()
    async def list_directory(
        self,
        path: Annotated[str, Field(description="Directory to list")],
    ) -> dict:
        """List the entries of a directory.

        Directories come first, then files, each sorted by name. The
        ``listing`` field prefixes each name with [DIR] or [FILE].

        Returns:
            Success response with {"path", "entries": [{"name", "type"}], "listing"}
        """
        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved
        if error := self._require_directory(resolved, path):
            return error

        entries = [
            {"name": e.name, "type": "directory" if e.is_dir(follow_symlinks=False) else "file"}
            for e in _sorted_entries(resolved)
        ]
        listing = "\n".join(
            f"{'[DIR]' if e['type'] == 'directory' else '[FILE]'} {e['name']}" for e in entries
        )
        logger.debug(f"Listed directory: {resolved} ({len(entries)} entries)")
        return self._create_success_response(
            result={"path": str(resolved), "entries": entries, "listing": listing},
            message=f"Listed {len(entries)} entries from: {path}",
        )

    @tool_operation()
    async def directory_tree(
        self,
        path: Annotated[str, Field(description="Root directory of the tree")],
        max_depth: Annotated[
            int | None, Field(description="Maximum directory depth to expand; omit for unlimited")
        ] = None,
    ) -> dict:
        """Get a recursive tree of files and directories.

        Each entry has "name" and "type"; directories also have "children".
        Subdirectories that cannot be read or validated, and directories
        beyond ``max_depth``, have empty children. Symlinks are not followed.

        Returns:
            Success response with {"path", "tree": [...]}
        """
        if max_depth is not None and max_depth < 0:
            raise InvalidArgumentsError("directory_tree", "max_depth must not be negative")

        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved
        if error := self._require_directory(resolved, path):
            return error

        tree: list[dict[str, Any]] = []
        pending: list[tuple[Path, list[dict[str, Any]], int]] = [(resolved, tree, 1)]
        while pending:
            directory, children, depth = pending.pop()
            try:
                entries = _sorted_entries(directory)
            except OSError as e:
                if directory == resolved:
                    raise
                logger.debug(f"Skipping unreadable directory {directory}: {e}")
                continue

            for entry in entries:
                if not entry.is_dir(follow_symlinks=False):
                    children.append({"name": entry.name, "type": "file"})
                    continue

                node: dict[str, Any] = {"name": entry.name, "type": "directory", "children": []}
                children.append(node)
                if max_depth is not None and depth >= max_depth:
                    continue
                sub = self.sandbox.validate(entry.path, use_cache=False)
                if isinstance(sub, PathDenial):
                    continue
                pending.append((sub, node["children"], depth + 1))

        logger.debug(f"Generated directory tree: {resolved}")
        return self._create_success_response(
            result={"path": str(resolved), "tree": tree},
            message=f"Generated directory tree for {path}",
        )

    @tool_operation()
    async def move_file(
        self,
        source: Annotated[str, Field(description="Path of the file or directory to move")],
        destination: Annotated[str, Field(description="New path; must not exist yet")],
    ) -> dict:
        """Move or rename a file or directory.

        Both paths must be inside allowed directories. Fails if the
        destination already exists.

        Returns:
            Success response with {"source", "destination"}
        """
        if denied := self._writes_disabled("move_file"):
            return denied

        source_path = self._resolve_path(source)
        if isinstance(source_path, dict):
            return source_path
        destination_path = self._resolve_path(destination)
        if isinstance(destination_path, dict):
            return destination_path

        if not os.path.lexists(source_path):
            return self._create_error_response(
                "PATH_NOT_FOUND", f"Path not found: {source}", {"path": str(source_path)}
            )
        if os.path.lexists(destination_path):
            return self._create_error_response(
                "DESTINATION_EXISTS",
                f"Destination already exists: {destination}",
                {"path": str(destination_path)},
            )

        shutil.move(source_path, destination_path)
        if self.sandbox.cache is not None:
            self.sandbox.cache.clear()
        logger.debug(f"Moved {source_path} to {destination_path}")
        return self._create_success_response(
            result={"source": str(source_path), "destination": str(destination_path)},
            message=f"Successfully moved {source} to {destination}",
        )

    @tool_operation()
    async def search_files(
        self,
        path: Annotated[str, Field(description="Directory to search from")],
        pattern: Annotated[str, Field(description="Case-insensitive substring of the name")],
        exclude_patterns: Annotated[
            list[str] | None, Field(description="Glob patterns of relative paths to skip")
        ] = None,
        max_results: Annotated[
            int, Field(description="Maximum number of matches to return", gt=0)
        ] = DEFAULT_MAX_SEARCH_RESULTS,
    ) -> dict:
        """Recursively search for files and directories whose name contains a pattern.

        Exclude patterns are globs matched against the path relative to the
        search root; a pattern without "*" excludes any path containing it.
        Excluded directories are not descended into, and neither are symlinks.

        Returns:
            Success response with {"matches": [...], "truncated": bool}
        """
        if max_results <= 0:
            raise InvalidArgumentsError("search_files", "max_results must be positive")

        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved
        if error := self._require_directory(resolved, path):
            return error

        needle = pattern.lower()
        globs = [_exclude_glob(p).lower() for p in exclude_patterns or []]
        matches: list[str] = []
        truncated = False
        pending = [str(resolved)]

        while pending and not truncated:
            current = pending.pop()
            try:
                entries = _sorted_entries(Path(current))
            except OSError as e:
                logger.debug(f"Skipping unreadable directory {current}: {e}")
                continue

            for entry in entries:
                if isinstance(self.sandbox.validate(entry.path, use_cache=False), PathDenial):
                    continue
                relative = os.path.relpath(entry.path, resolved).lower()
                if any(fnmatch.fnmatchcase(relative, g) for g in globs):
                    continue

                if needle in entry.name.lower():
                    if len(matches) >= max_results:
                        truncated = True
                        break
                    matches.append(entry.path)

                if entry.is_dir(follow_symlinks=False):
                    pending.append(entry.path)

        logger.debug(f"Search complete: {pattern} ({len(matches)} matches)")
        message = f"Found {len(matches)} matches" if matches else "No matches found"
        return self._create_success_response(
            result={"matches": matches, "truncated": truncated}, message=message
        )

    @tool_operation()
    async def get_file_info(
        self,
        path: Annotated[str, Field(description="Path of the file or directory")],
    ) -> dict:
        """Retrieve metadata about a file or directory.

        Returns:
            Success response with size, created/modified/accessed timestamps
            (ISO-8601, UTC), is_directory, is_file and octal permissions
        """
        resolved = self._resolve_path(path)
        if isinstance(resolved, dict):
            return resolved

        stats = resolved.stat()
        created = getattr(stats, "st_birthtime", stats.st_ctime)
        info = {
            "path": str(resolved),
            "size": stats.st_size,
            "created": _isoformat(created),
            "modified": _isoformat(stats.st_mtime),
            "accessed": _isoformat(stats.st_atime),
            "is_directory": stat.S_ISDIR(stats.st_mode),
            "is_file": stat.S_ISREG(stats.st_mode),
            "permissions": format(stat.S_IMODE(stats.st_mode), "o")[-3:].rjust(3, "0"),
        }
        logger.debug(f"Retrieved file info: {resolved}")
        return self._create_success_response(result=info, message=f"Retrieved metadata for: {path}")

    @tool_operation()
    async def list_allowed_directories(self) -> dict:
        """List the directories this server is allowed to access."""
        directories = list(self.sandbox.allowed_directories)
        return self._create_success_response(
            result={"allowed_directories": directories},
            message="Allowed directories:\n" + "\n".join(directories),
        )

    @tool_operation()
    async def get_metrics(self) -> dict:
        """Get per-operation call counts, error counts and average durations."""
        return self._create_success_response(
            result=self.metrics.get_metrics(), message="Retrieved server metrics"
        )
