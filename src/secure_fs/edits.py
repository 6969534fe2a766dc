"""Patch engine: exact-text, indentation-preserving edits with unified diffs.

Each edit replaces one block of whole lines. Edits are applied in order,
each against the document produced by the previous one:

1. Line endings of the document and of both edit texts are normalized to LF
   for matching; each document line remembers its own terminator
2. The document is scanned for the first run of lines equal to old_text
3. The replacement is re-indented relative to the first matched line
4. The matched lines are replaced and the next edit runs on the result

Any edit that cannot be matched aborts the whole batch before anything is
written, so the file on disk is only ever replaced with a fully edited text.
"""

import difflib
import logging
import os
import re
import tempfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from secure_fs.exceptions import (
    EditNotFoundError,
    FileSizeExceededError,
    InvalidArgumentsError,
)

logger = logging.getLogger(__name__)

NO_NEWLINE_MARKER = "\\ No newline at end of file"
_LEADING_WHITESPACE = re.compile(r"^\s*")


class EditOperation(BaseModel):
    """A single exact-text replacement."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    old_text: str = Field(alias="oldText", description="Text to search for - must match exactly")
    new_text: str = Field(alias="newText", description="Text to replace with")


@dataclass(frozen=True)
class EditResult:
    """Outcome of applying a batch of edits.

    Attributes:
        original_text: Text before any edit
        new_text: Text after every edit, in the original line-ending style
        diff: Fenced unified diff, empty when nothing changed
        changed: Whether the text differs from the original
        edits_applied: Number of edits matched and applied
    """

    original_text: str
    new_text: str
    diff: str
    changed: bool
    edits_applied: int

    @property
    def message(self) -> str:
        if not self.changed:
            return "No changes made - edits left the file unchanged"
        return f"Applied {self.edits_applied} edit(s)"


def coerce_edits(edits: Iterable[EditOperation | dict[str, Any]]) -> list[EditOperation]:
    """Accept EditOperation instances or plain dicts (camelCase or snake_case)."""
    operations = []
    for index, edit in enumerate(edits):
        if isinstance(edit, EditOperation):
            operations.append(edit)
            continue
        try:
            operations.append(EditOperation.model_validate(edit))
        except ValidationError as e:
            raise InvalidArgumentsError(
                "edit_file", f"edit {index} is malformed: {e.errors()[0]['msg']}"
            ) from e
    return operations


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n")


def _split_lines(text: str) -> tuple[list[str], list[str]]:
    """Split text into line contents and their terminators.

    Each terminator is ``"\\r\\n"`` or ``"\\n"``; the last line's is ``""``.
    Keeping them per line lets mixed-ending files round-trip unchanged.
    """
    *terminated, last = text.split("\n")
    lines, endings = [], []
    for part in terminated:
        if part.endswith("\r"):
            lines.append(part[:-1])
            endings.append("\r\n")
        else:
            lines.append(part)
            endings.append("\n")
    lines.append(last)
    endings.append("")
    return lines, endings


def _leading_whitespace(line: str) -> str:
    return _LEADING_WHITESPACE.match(line).group(0)


def _find_block(lines: Sequence[str], block: Sequence[str]) -> int:
    """Return the first index where ``block`` occurs as consecutive lines, or -1."""
    size = len(block)
    for start in range(len(lines) - size + 1):
        if lines[start : start + size] == block:
            return start
    return -1


def reindent(new_lines: Sequence[str], old_lines: Sequence[str], anchor: str) -> list[str]:
    """Re-derive indentation for replacement lines.

    The first line takes the anchor indent. Later lines that are indented,
    where the old line at the same position was indented too, keep their
    indent relative to that old line on top of the anchor. Everything else
    is emitted unchanged.
    """
    rewritten = []
    for position, line in enumerate(new_lines):
        if position == 0:
            rewritten.append(anchor + line.lstrip())
            continue

        old_indent = _leading_whitespace(old_lines[position]) if position < len(old_lines) else ""
        new_indent = _leading_whitespace(line)
        if old_indent and new_indent:
            relative = len(new_indent) - len(old_indent)
            rewritten.append(anchor + " " * max(0, relative) + line.lstrip())
        else:
            rewritten.append(line)
    return rewritten


def create_unified_diff(original: str, modified: str, file_path: str) -> str:
    """Unified diff between two texts with ``original``/``modified`` labels."""
    chunks = []
    for line in difflib.unified_diff(
        original.splitlines(keepends=True),
        modified.splitlines(keepends=True),
        fromfile=file_path,
        tofile=file_path,
        fromfiledate="original",
        tofiledate="modified",
    ):
        if line.endswith("\n"):
            chunks.append(line)
        else:
            chunks.append(f"{line}\n{NO_NEWLINE_MARKER}\n")
    return "".join(chunks)


def fence_diff(diff: str) -> str:
    """Wrap a diff in a backtick fence longer than any backtick run inside it."""
    ticks = 3
    while "`" * ticks in diff:
        ticks += 1
    fence = "`" * ticks
    return f"{fence}diff\n{diff}{fence}\n\n"


def apply_edits(
    original_text: str,
    edits: Iterable[EditOperation | dict[str, Any]],
    file_path: str = "file",
) -> EditResult:
    """Apply edits in order and compute the resulting diff.

    Args:
        original_text: Current file content
        edits: Ordered edits, each matched against the output of the previous
        file_path: Label used in the diff headers

    Returns:
        EditResult with the edited text and fenced diff

    Raises:
        InvalidArgumentsError: An edit has empty old_text or is malformed
        EditNotFoundError: An edit's old_text does not occur in the document

    Example:
        >>> result = apply_edits(
        ...     "function f() {\\n  return 1\\n}",
        ...     [EditOperation(old_text="  return 1", new_text="  return 2")],
        ... )
        >>> result.new_text
        'function f() {\\n  return 2\\n}'
    """
    operations = coerce_edits(edits)
    lines, endings = _split_lines(original_text)
    document = "\n".join(lines)
    applied = 0

    for index, edit in enumerate(operations):
        old = normalize_line_endings(edit.old_text)
        new = normalize_line_endings(edit.new_text)
        if not old:
            raise InvalidArgumentsError("edit_file", f"edit {index} has empty old_text")

        old_lines = old.split("\n")
        start = _find_block(lines, old_lines)
        if start == -1:
            raise EditNotFoundError(edit.old_text, index, path=file_path)

        end = start + len(old_lines)
        anchor = _leading_whitespace(lines[start])
        replacement = reindent(new.split("\n"), old_lines, anchor)
        # Inner lines reuse the block's own terminator; the last keeps the block's last one
        inner = endings[start] or (endings[start - 1] if start else "") or "\n"
        lines[start:end] = replacement
        endings[start:end] = [inner] * (len(replacement) - 1) + [endings[end - 1]]
        applied += 1
        logger.debug(f"Applied edit {index} at line {start + 1} of {file_path}")

    modified = "\n".join(lines)
    changed = modified != document
    diff = fence_diff(create_unified_diff(document, modified, file_path)) if changed else ""

    return EditResult(
        original_text=original_text,
        new_text="".join(line + ending for line, ending in zip(lines, endings))
        if changed
        else original_text,
        diff=diff,
        changed=changed,
        edits_applied=applied,
    )


def write_text_atomic(path: Path, content: str) -> None:
    """Replace a file's content via a temp file in the same directory."""
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        try:
            os.chmod(temp_path, path.stat().st_mode & 0o7777)
        except FileNotFoundError:
            pass
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def edit_text_file(
    path: Path,
    edits: Iterable[EditOperation | dict[str, Any]],
    dry_run: bool = False,
    max_size: int = 0,
) -> EditResult:
    """Apply edits to an already validated file.

    Args:
        path: Validated absolute path of an existing text file
        edits: Ordered edit operations
        dry_run: Compute the diff without writing anything
        max_size: Byte ceiling for the existing and the edited file (0 = none)

    Returns:
        EditResult; the file is rewritten only when not a dry run and changed

    Raises:
        FileSizeExceededError: The file or its edited text is too large
        InvalidArgumentsError, EditNotFoundError: See :func:`apply_edits`
    """
    if max_size > 0:
        size = path.stat().st_size
        if size > max_size:
            raise FileSizeExceededError(str(path), size, max_size)

    with open(path, encoding="utf-8", newline="") as f:
        original = f.read()

    result = apply_edits(original, edits, file_path=str(path))

    if max_size > 0:
        new_size = len(result.new_text.encode("utf-8"))
        if new_size > max_size:
            raise FileSizeExceededError(str(path), new_size, max_size)

    if result.changed and not dry_run:
        write_text_atomic(path, result.new_text)
        logger.debug(f"Successfully edited file: {path}")
    return result
