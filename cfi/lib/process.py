"""Process utilities with explicit command status."""

import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from cfi.core.context import Context


class CommandError(Exception):
    """Error running a command."""

    def __init__(self, cmd: list[str], returncode: int | None = None, message: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.message = message
        status = "" if returncode is None else f" (exit {returncode})"
        detail = f": {message}" if message else ""
        super().__init__(f"Command failed{status}: {' '.join(cmd)}{detail}")


@dataclass(frozen=True)
class Success:
    """A command that exited zero."""

    stdout: str
    stderr: str = ""
    ok = True


@dataclass(frozen=True)
class Failure:
    """A command that exited non-zero, timed out or could not start."""

    returncode: int | None
    message: str
    stdout: str = ""
    ok = False


CommandResult = Union[Success, Failure]


def run_command(
    cmd: list[str],
    context: "Context | None" = None,
    timeout: int | None = 60,
    input: str | None = None,
) -> CommandResult:
    """
    Run a command and return a tagged result.

    Args:
        cmd: Command and arguments
        context: Execution context (for testing)
        timeout: Timeout in seconds; expiry is a Failure with no returncode
        input: Text fed to the command on stdin

    Returns:
        Success with stdout, or Failure with returncode and message
    """
    if context is None:
        from cfi.core.context import Context
        context = Context()

    try:
        result = context.run(cmd, timeout=timeout, input=input)
    except subprocess.TimeoutExpired:
        return Failure(returncode=None, message=f"timed out after {timeout}s")
    except OSError as e:
        return Failure(returncode=None, message=str(e))

    if result.returncode != 0:
        message = (result.stderr or "").strip() or (result.stdout or "").strip()
        return Failure(returncode=result.returncode, message=message, stdout=result.stdout or "")

    return Success(stdout=result.stdout or "", stderr=result.stderr or "")
