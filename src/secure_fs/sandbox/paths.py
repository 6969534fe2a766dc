"""Lexical path helpers used by the sandbox.

None of these functions touch the filesystem; symlink resolution is the job
of :mod:`secure_fs.sandbox.validator`.
"""

import os
from pathlib import Path


def expand_home(path: str) -> str:
    """Expand a leading ``~`` to the current user's home directory.

    Only ``~`` and ``~/...`` are expanded. ``~otheruser`` is left untouched.

    Example:
        >>> expand_home("~/notes.txt")  # doctest: +SKIP
        '/home/alice/notes.txt'
    """
    if path == "~" or path.startswith("~/") or path.startswith("~" + os.sep):
        return str(Path.home()) + path[1:]
    return path


def normalize_path(path: str) -> str:
    """Return the absolute, normalized form of a user supplied path.

    Expands ``~``, resolves relative paths against the current working
    directory and collapses ``.``/``..`` and repeated separators.
    """
    expanded = expand_home(path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(os.getcwd(), expanded)
    return os.path.normpath(expanded)


def is_within(path: str, root: str) -> bool:
    """Check that ``path`` is ``root`` or lies beneath it.

    The comparison is separator aware, so ``/data-old`` is not inside
    ``/data``. Both arguments must already be normalized.
    """
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)
