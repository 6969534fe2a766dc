"""Secure filesystem server - sandboxed file access over the Model Context Protocol."""

from importlib.metadata import PackageNotFoundError, version

# Read version from package metadata (pyproject.toml)
try:
    __version__ = version("secure-filesystem-server")
except PackageNotFoundError:
    # Fallback for development environments where package isn't installed
    __version__ = "0.0.0.dev"

from secure_fs.config import ServerSettings
from secure_fs.sandbox import PathSandbox, PathValidationCache

__all__ = ["PathSandbox", "PathValidationCache", "ServerSettings", "__version__"]
