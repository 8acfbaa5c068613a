"""Execution gate: coordinator-only, single-instance runs."""

import fcntl
import os
import re
from dataclasses import dataclass
from pathlib import Path

from cfi.core.runcontext import RunContext
from cfi.lib.process import run_command


# mmlsmgr -c: "Cluster manager node: 10.1.2.3 (gpfs-nsd01)"
MANAGER_RE = re.compile(r"Cluster manager node:\s*(\S+)\s*\(([^)]+)\)")


class GateError(Exception):
    """The run must not proceed."""

    exit_code = 3


class NotCoordinator(GateError):
    exit_code = 1


class AlreadyRunning(GateError):
    exit_code = 2


class LockUnavailable(GateError):
    """The lock file itself cannot be created or written."""

    exit_code = 3


@dataclass
class GateResult:
    """
    A passed gate.

    lock_fd stays open for the life of the process; the kernel drops the
    flock when the process exits, however it exits.
    """

    lock_file: Path
    lock_fd: int
    coordinator: str | None
    forced: bool


def short_name(host: str) -> str:
    return host.strip().split(".")[0]


def parse_cluster_manager(text: str) -> str | None:
    """Return the cluster manager's node name from mmlsmgr -c output."""
    match = MANAGER_RE.search(text)
    if match is None:
        return None
    return match.group(2).strip()


def check_coordinator(run: RunContext) -> str:
    """
    Make sure this host is the cluster manager.

    Returns:
        The cluster manager node name

    Raises:
        NotCoordinator: If another node is manager or the manager is unknown
    """
    cmd = run.gpfs("mmlsmgr", "-c")
    result = run_command(cmd, context=run.context, timeout=run.settings.command_timeout)
    if not result.ok:
        raise NotCoordinator(
            f"Unable to query cluster manager (status {result.returncode}): {result.message}"
        )
    run.dump("mmlsmgr -c", result.stdout)

    manager = parse_cluster_manager(result.stdout)
    if manager is None:
        raise NotCoordinator("Unable to determine cluster manager from mmlsmgr output")

    local = short_name(run.context.hostname())
    if short_name(manager) != local:
        raise NotCoordinator(f"{local} is not the cluster manager ({manager})")
    return manager


def acquire_lock(path: Path) -> int:
    """
    Take an exclusive non-blocking flock on a sentinel file.

    Returns:
        The open descriptor holding the lock

    Raises:
        AlreadyRunning: If another process holds the lock
        LockUnavailable: If the lock file cannot be created or opened
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    except OSError as e:
        raise LockUnavailable(f"Unable to open lock file {path}: {e}")
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        os.close(fd)
        raise AlreadyRunning(f"Another instance holds {path}")

    try:
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
    except OSError as e:
        os.close(fd)
        raise LockUnavailable(f"Unable to write lock file {path}: {e}")
    return fd


def acquire(run: RunContext) -> GateResult:
    """
    Pass the gate or raise.

    The coordinator check is skipped when run.force is set; the lock is
    always taken.
    """
    coordinator = None
    if not run.force:
        coordinator = check_coordinator(run)
        run.say(f"Running on cluster manager {coordinator}")

    lock_file = Path(run.settings.lock_file)
    fd = acquire_lock(lock_file)
    return GateResult(lock_file=lock_file, lock_fd=fd, coordinator=coordinator, forced=run.force)
