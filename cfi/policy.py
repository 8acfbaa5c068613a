"""Per-filesystem threshold/increment table."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from cfi.lib.filesystem import FileError, read_file
from cfi.models import ROOT_FILESET

if TYPE_CHECKING:
    from cfi.core.context import Context


DEFAULT_THRESHOLD = 150000
DEFAULT_INCREMENT = 250000

DEFAULT_POLICY_TEXT = f"""\
# Inode auto-extension policy for this filesystem.
#
# fileset       threshold   increment
#   threshold: extend when fewer than this many inodes remain
#   increment: inodes added to the limit per extension
# Filesets without their own line use the {ROOT_FILESET} line.
{ROOT_FILESET:<15} {DEFAULT_THRESHOLD:<11} {DEFAULT_INCREMENT}
"""


class PolicyError(Exception):
    """The threshold table could not be read or created."""

    pass


@dataclass(frozen=True)
class PolicyEntry:
    threshold: int
    increment: int


@dataclass
class ThresholdPolicy:
    """Threshold/increment pairs keyed by fileset name, with a root default."""

    entries: dict[str, PolicyEntry] = field(default_factory=dict)
    source: Path | None = None
    created: bool = False
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.entries.setdefault(ROOT_FILESET, PolicyEntry(DEFAULT_THRESHOLD, DEFAULT_INCREMENT))

    def lookup(self, fileset: str) -> PolicyEntry:
        """Exact entry for fileset, else the root entry."""
        return self.entries.get(fileset, self.entries[ROOT_FILESET])


def parse_policy(text: str, source: Path | None = None) -> ThresholdPolicy:
    """
    Parse a whitespace-delimited `fileset threshold increment` table.

    Comment lines start with #. Rows that are short or carry
    non-positive or non-integer values are skipped with a warning.
    """
    entries: dict[str, PolicyEntry] = {}
    warnings = []
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) < 3:
            warnings.append(f"line {lineno}: expected 'fileset threshold increment'")
            continue
        name, threshold, increment = parts[:3]
        try:
            entry = PolicyEntry(int(threshold), int(increment))
        except ValueError:
            warnings.append(f"line {lineno}: non-integer threshold or increment for {name}")
            continue
        if entry.threshold <= 0 or entry.increment <= 0:
            warnings.append(f"line {lineno}: threshold and increment must be positive for {name}")
            continue
        entries[name] = entry

    return ThresholdPolicy(entries=entries, source=source, warnings=warnings)


def load_policy(path: Path, context: "Context | None" = None) -> ThresholdPolicy:
    """
    Load the policy table, creating the default one when it is missing.

    Raises:
        PolicyError: If the file cannot be read or created
    """
    if context is None:
        from cfi.core.context import Context
        context = Context()

    if not context.file_exists(str(path)):
        try:
            path.write_text(DEFAULT_POLICY_TEXT)
        except OSError as e:
            raise PolicyError(f"Unable to create default policy {path}: {e}")
        policy = parse_policy(DEFAULT_POLICY_TEXT, source=path)
        policy.created = True
        return policy

    try:
        text = read_file(str(path), context=context)
    except FileError as e:
        raise PolicyError(str(e))
    return parse_policy(text, source=path)
