"""Path sandbox: prove that a client supplied path stays inside the allow-list.

Security checks performed by :meth:`PathSandbox.validate`:
1. The normalized requested path lies on or under an allowed directory,
   either its real path or the spelling it was configured with
2. Its real path (all symlinks resolved) still lies under an allowed directory
3. For paths that do not exist yet, the real path of the parent directory
   lies under an allowed directory (permits file and directory creation)

Denials are returned as :class:`PathDenial` values rather than raised, so
call sites handle them explicitly. :meth:`PathSandbox.validate_or_raise`
offers the exception form for callers that prefer it.
"""

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from secure_fs.exceptions import AccessDeniedError, FileSystemError, PathNotFoundError
from secure_fs.sandbox.cache import PathValidationCache
from secure_fs.sandbox.paths import expand_home, is_within, normalize_path

logger = logging.getLogger(__name__)


class DenialKind(str, Enum):
    """Why a path was refused."""

    ACCESS_DENIED = "ACCESS_DENIED"
    PATH_NOT_FOUND = "PATH_NOT_FOUND"


@dataclass(frozen=True)
class PathDenial:
    """Failed validation outcome.

    Attributes:
        kind: Machine-readable denial kind
        path: The offending path (the requested, real or parent path)
        message: Human-friendly explanation
        allowed_directories: Configured roots, included for ACCESS_DENIED
    """

    kind: DenialKind
    path: str
    message: str
    allowed_directories: tuple[str, ...] = field(default_factory=tuple)

    def to_error(self) -> FileSystemError:
        """Convert the denial into the matching typed exception."""
        if self.kind is DenialKind.PATH_NOT_FOUND:
            return PathNotFoundError(self.path, self.message)
        return AccessDeniedError(self.path, self.message, self.allowed_directories)

    def to_details(self) -> dict[str, Any]:
        details: dict[str, Any] = {"path": self.path}
        if self.kind is DenialKind.ACCESS_DENIED:
            details["allowed_directories"] = list(self.allowed_directories)
        return details


ValidationResult = Path | PathDenial


def canonicalize_root(directory: str | Path) -> str:
    """Expand, absolutise and resolve an allowed directory."""
    expanded = expand_home(str(directory))
    return os.path.realpath(os.path.abspath(expanded))


class PathSandbox:
    """Validates client paths against an immutable set of allowed directories.

    Example:
        >>> sandbox = PathSandbox(["/srv/data"], cache=PathValidationCache())
        >>> result = sandbox.validate("/srv/data/notes.txt")
        >>> if isinstance(result, PathDenial):
        ...     print(result.kind, result.message)
    """

    def __init__(
        self,
        allowed_directories: Iterable[str | Path],
        cache: PathValidationCache | None = None,
        allow_symlinks: bool = True,
    ):
        """Initialize the sandbox.

        Args:
            allowed_directories: Roots the server may expose
            cache: Optional validation cache shared by the server context
            allow_symlinks: When False, paths that traverse a symlink are
                denied even if the link target is inside an allowed root
        """
        roots = []
        spellings = []
        for directory in allowed_directories:
            root = canonicalize_root(directory)
            if root not in roots:
                roots.append(root)
            configured = normalize_path(str(directory))
            if configured != root and configured not in spellings:
                spellings.append(configured)
        if not roots:
            raise ValueError("At least one allowed directory is required")

        self._allowed_directories = tuple(roots)
        # Roots as configured when they sit behind a symlink (/tmp on macOS)
        self._configured_spellings = tuple(spellings)
        self.cache = cache
        self.allow_symlinks = allow_symlinks

    @property
    def allowed_directories(self) -> tuple[str, ...]:
        return self._allowed_directories

    def is_allowed(self, path: str) -> bool:
        """Containment test of a normalized absolute path against every root."""
        return any(is_within(path, root) for root in self._allowed_directories)

    def _is_requested_allowed(self, requested: str) -> bool:
        """Lexical check of the request; the real path is checked afterwards."""
        return self.is_allowed(requested) or any(
            is_within(requested, root) for root in self._configured_spellings
        )

    def validate(self, candidate: str, use_cache: bool = True) -> ValidationResult:
        """Resolve ``candidate`` and prove it stays inside the sandbox.

        Args:
            candidate: Raw path from the client; may be relative, start with
                ``~`` or not exist yet
            use_cache: Consult and fill the validation cache. Bulk walks pass
                False so they do not evict entries of the hot paths.

        Returns:
            The validated absolute path (the real path for existing paths,
            the normalized path for not-yet-existing ones) or a PathDenial
        """
        if "\x00" in candidate:
            logger.warning(f"Access denied: path contains a NUL byte: {candidate!r}")
            return self._deny(
                DenialKind.ACCESS_DENIED,
                candidate.replace("\x00", "\\x00"),
                "Access denied - path contains a NUL byte",
            )

        cache = self.cache if use_cache else None
        if cache is not None:
            cached = cache.get(candidate)
            if cached is not None:
                logger.debug(f"Path cache hit: {candidate} -> {cached}")
                return Path(cached)

        requested = normalize_path(candidate)

        if not self._is_requested_allowed(requested):
            logger.warning(
                f"Access denied: {requested} (allowed: {list(self._allowed_directories)})"
            )
            return self._deny(
                DenialKind.ACCESS_DENIED,
                requested,
                f"Access denied - path outside allowed directories: {requested}",
            )

        try:
            real_path = os.path.realpath(requested, strict=True)
        except FileNotFoundError:
            return self._validate_missing(candidate, requested, cache)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not resolve {requested}: {e}")
            return self._deny(
                DenialKind.ACCESS_DENIED,
                requested,
                f"Access denied - path could not be resolved: {requested} "
                f"({getattr(e, 'strerror', None) or e})",
            )

        if not self.is_allowed(real_path):
            logger.warning(
                f"Symlink target outside allowed directories: {real_path} (requested: {requested})"
            )
            return self._deny(
                DenialKind.ACCESS_DENIED,
                requested,
                f"Access denied - symlink target outside allowed directories: {requested}",
            )

        if not self.allow_symlinks and real_path != requested:
            logger.warning(f"Symlink refused (symlinks disabled): {requested} -> {real_path}")
            return self._deny(
                DenialKind.ACCESS_DENIED,
                requested,
                f"Access denied - symlinks are disabled: {requested}",
            )

        return self._accept(candidate, real_path, cache)

    def validate_or_raise(self, candidate: str) -> Path:
        """Like :meth:`validate` but raises AccessDeniedError/PathNotFoundError."""
        result = self.validate(candidate)
        if isinstance(result, PathDenial):
            raise result.to_error()
        return result

    def _validate_missing(
        self, candidate: str, requested: str, cache: PathValidationCache | None
    ) -> ValidationResult:
        """Allow a non-existent path when its parent resolves inside a root."""
        if os.path.islink(requested):
            # Dangling link: writing through it would create the link target.
            target = os.path.realpath(requested)
            if not self.allow_symlinks or not self.is_allowed(target):
                logger.warning(f"Dangling symlink refused: {requested} -> {target}")
                return self._deny(
                    DenialKind.ACCESS_DENIED,
                    requested,
                    f"Access denied - symlink target outside allowed directories: {requested}",
                )

        parent = os.path.dirname(requested)
        try:
            real_parent = os.path.realpath(parent, strict=True)
        except FileNotFoundError:
            logger.warning(f"Parent directory does not exist: {parent}")
            return self._deny(DenialKind.PATH_NOT_FOUND, parent, f"Path not found: {parent}")
        except OSError as e:
            logger.warning(f"Could not resolve parent directory {parent}: {e}")
            return self._deny(
                DenialKind.ACCESS_DENIED,
                parent,
                f"Access denied - parent directory could not be resolved: {parent}",
            )

        if not self.is_allowed(real_parent):
            logger.warning(f"Parent directory outside allowed directories: {parent}")
            return self._deny(
                DenialKind.ACCESS_DENIED,
                parent,
                "Access denied - parent directory outside allowed directories",
            )

        if not self.allow_symlinks and real_parent != parent:
            logger.warning(f"Symlink refused (symlinks disabled): {parent} -> {real_parent}")
            return self._deny(
                DenialKind.ACCESS_DENIED,
                parent,
                f"Access denied - symlinks are disabled: {parent}",
            )

        return self._accept(candidate, requested, cache)

    def _accept(
        self, candidate: str, validated: str, cache: PathValidationCache | None
    ) -> Path:
        if cache is not None:
            cache.set(candidate, validated)
        logger.debug(f"Path validated: {candidate} -> {validated}")
        return Path(validated)

    def _deny(self, kind: DenialKind, path: str, message: str) -> PathDenial:
        allowed = self._allowed_directories if kind is DenialKind.ACCESS_DENIED else ()
        return PathDenial(kind=kind, path=path, message=message, allowed_directories=allowed)
