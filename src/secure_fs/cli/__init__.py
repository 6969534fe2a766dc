"""Command-line interface for the secure filesystem server."""

from secure_fs.cli.app import app

__all__ = ["app"]
