"""Per-run state threaded through every component."""

import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from cfi.core.config import Settings
from cfi.core.context import Context
from cfi.core.logging import ScriptLogger

if TYPE_CHECKING:
    from cfi.endpoints import EndpointConfig


@dataclass
class RunContext:
    """
    Everything a component needs to know about the current run.

    Replaces process-wide globals: the ignore list, verbosity, switches
    and endpoint config all travel with this value.
    """

    context: Context
    settings: Settings
    logger: ScriptLogger
    started_ns: int
    endpoints: "EndpointConfig | None" = None
    ignore: list[str] = field(default_factory=list)
    verbose: bool = False
    debug: bool = False
    force: bool = False
    metrics: bool = True
    dry_run: bool = False

    @property
    def started(self) -> datetime:
        """Run start as local time."""
        return datetime.fromtimestamp(self.started_ns / 1e9)

    @property
    def run_id(self) -> str:
        return self.started.strftime("%Y%m%d%H%M%S")

    def gpfs(self, command: str, *args: str) -> list[str]:
        """Build a GPFS command line."""
        return [self.settings.gpfs(command), *args]

    def say(self, message: str) -> None:
        """Print an operator note when verbose."""
        if self.verbose or self.debug:
            print(message)

    def dump(self, label: str, text: str) -> None:
        """Print raw diagnostic output when debugging."""
        if self.debug:
            print(f"--- {label} ---", file=sys.stderr)
            print(text.rstrip("\n"), file=sys.stderr)
            print(f"--- end {label} ---", file=sys.stderr)
