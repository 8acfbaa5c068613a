"""Remediation applier: raise a fileset's inode limit and record it."""

import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Union

from cfi.core.runcontext import RunContext
from cfi.lib.filesystem import append_line
from cfi.lib.process import run_command
from cfi.models import FilesetRecord, MonitoredFilesystem


@dataclass(frozen=True)
class Applied:
    fileset: str
    old_max: int
    new_max: int
    line: str
    dry_run: bool = False
    log_error: str | None = None


@dataclass(frozen=True)
class ApplyFailed:
    fileset: str
    attempted_ceiling: int
    error: str
    returncode: int | None = None


ApplyResult = Union[Applied, ApplyFailed]


def format_change(when: datetime, device: str, fileset: str, old_max: int, new_max: int) -> str:
    """`2024-01-01 12:00:00, gpfs01:proj1, 1000000 -> 1250000`"""
    return f"{when:%Y-%m-%d %H:%M:%S}, {device}:{fileset}, {old_max} -> {new_max}"


def extensions_log(run: RunContext, fs: MonitoredFilesystem) -> Path:
    return Path(fs.mountpoint) / run.settings.extensions_log_name


def apply(
    run: RunContext,
    fs: MonitoredFilesystem,
    record: FilesetRecord,
    new_ceiling: int,
) -> ApplyResult:
    """
    Run mmchfileset --inode-limit and log the change.

    A non-zero exit or a timeout is an ApplyFailed and leaves the
    extensions log untouched.
    """
    cmd = run.gpfs("mmchfileset", fs.device, record.name, "--inode-limit", str(new_ceiling))
    when = datetime.fromtimestamp(run.context.now_ns() / 1e9)
    line = format_change(when, fs.device, record.name, record.max_inodes, new_ceiling)

    if run.dry_run:
        print(f"[dry-run] {line}")
        return Applied(record.name, record.max_inodes, new_ceiling, line, dry_run=True)

    result = run_command(cmd, context=run.context, timeout=run.settings.command_timeout)
    if not result.ok:
        run.logger.error(
            "inode limit change failed",
            filesystem=fs.device,
            fileset=record.name,
            attempted=new_ceiling,
            returncode=result.returncode,
            error=result.message,
        )
        return ApplyFailed(
            fileset=record.name,
            attempted_ceiling=new_ceiling,
            error=result.message or "mmchfileset failed",
            returncode=result.returncode,
        )

    run.logger.info(
        "inode limit raised",
        filesystem=fs.device,
        fileset=record.name,
        old_max=record.max_inodes,
        new_max=new_ceiling,
    )
    print(line)

    # the limit is already raised; a log write failure must not hide that
    log_path = extensions_log(run, fs)
    try:
        append_line(log_path, line, sync=True)
    except OSError as e:
        log_error = f"unable to record change in {log_path}: {e}"
        print(f"Warning: {fs.device}:{record.name}: {log_error}", file=sys.stderr)
        run.logger.error("extensions log write failed", filesystem=fs.device, fileset=record.name, error=str(e))
        return Applied(record.name, record.max_inodes, new_ceiling, line, log_error=log_error)
    return Applied(record.name, record.max_inodes, new_ceiling, line)
