"""Filesystem utilities for the monitor and delivery agent."""

import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cfi.core.context import Context


class FileError(Exception):
    """Error accessing a file."""

    pass


def read_file(
    path: str,
    context: "Context | None" = None,
    default: str | None = None,
) -> str:
    """
    Read file contents.

    Args:
        path: Path to file
        context: Execution context (for testing)
        default: Default value if file doesn't exist

    Returns:
        File contents

    Raises:
        FileError: If file doesn't exist and no default provided
    """
    if context is None:
        from cfi.core.context import Context
        context = Context()

    try:
        return context.read_file(path)
    except FileNotFoundError:
        if default is not None:
            return default
        raise FileError(f"File not found: {path}")
    except OSError as e:
        raise FileError(f"Unable to read {path}: {e}")


def append_line(path: Path, line: str, sync: bool = False) -> None:
    """
    Append one line to a file, creating it if needed.

    Args:
        path: File to append to
        line: Line without trailing newline
        sync: fsync before returning
    """
    with open(path, "a") as f:
        f.write(line + "\n")
        f.flush()
        if sync:
            os.fsync(f.fileno())


def remove_file(path: Path) -> bool:
    """
    Remove a file.

    Returns:
        True if this call removed it, False if it was already gone
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
