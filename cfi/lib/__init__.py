"""Shared utility library for cfi."""

from cfi.lib.filesystem import FileError, append_line, read_file, remove_file
from cfi.lib.process import CommandError, CommandResult, Failure, Success, run_command

__all__ = [
    "CommandError",
    "CommandResult",
    "Failure",
    "FileError",
    "Success",
    "append_line",
    "read_file",
    "remove_file",
    "run_command",
]
