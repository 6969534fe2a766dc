"""Path sandbox and validation cache."""

from secure_fs.sandbox.cache import PathValidationCache
from secure_fs.sandbox.paths import expand_home, is_within, normalize_path
from secure_fs.sandbox.validator import (
    DenialKind,
    PathDenial,
    PathSandbox,
    ValidationResult,
    canonicalize_root,
)

__all__ = [
    "DenialKind",
    "PathDenial",
    "PathSandbox",
    "PathValidationCache",
    "ValidationResult",
    "canonicalize_root",
    "expand_home",
    "is_within",
    "normalize_path",
]
