"""Shared test fixtures."""

import subprocess
import sys
from pathlib import Path

import pytest

# Add project root to path for package and test helper imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cfi.core.config import Settings  # noqa: E402
from cfi.core.logging import ScriptLogger  # noqa: E402
from cfi.core.runcontext import RunContext  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"

GPFS = "/usr/lpp/mmfs/bin"

# 2024-01-01 12:00:00 UTC
NOW_NS = 1704110400 * 10**9


class MockContext:
    """Mock Context for testing without GPFS or real system access."""

    def __init__(
        self,
        command_outputs: dict[tuple, str | Exception | subprocess.CompletedProcess] | None = None,
        file_contents: dict[str, str] | None = None,
        hostname: str = "nsd01.example.org",
        now_ns: int = NOW_NS,
    ):
        self.command_outputs = command_outputs or {}
        self.file_contents = file_contents or {}
        self._hostname = hostname
        self._now_ns = now_ns
        self.commands_run: list[list[str]] = []
        self.command_inputs: dict[tuple, str] = {}

    def run(
        self,
        cmd: list[str],
        check: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        """Return mocked command output."""
        self.commands_run.append(cmd)
        key = tuple(cmd)
        if kwargs.get("input") is not None:
            self.command_inputs[key] = kwargs["input"]
        if key not in self.command_outputs:
            raise KeyError(f"No mock output for command: {cmd}")

        output = self.command_outputs[key]
        if isinstance(output, Exception):
            raise output

        # Allow passing CompletedProcess directly for non-zero returncodes
        if isinstance(output, subprocess.CompletedProcess):
            return output

        return subprocess.CompletedProcess(
            cmd,
            returncode=0,
            stdout=output,
            stderr="",
        )

    def read_file(self, path: str) -> str:
        """Return mocked file content."""
        if path not in self.file_contents:
            raise FileNotFoundError(f"No mock content for: {path}")
        return self.file_contents[path]

    def file_exists(self, path: str) -> bool:
        """Check if path is in mocked files."""
        return path in self.file_contents

    def hostname(self) -> str:
        """Return mocked host name."""
        return self._hostname

    def now_ns(self) -> int:
        """Return mocked clock."""
        return self._now_ns


def failed(cmd: list[str], returncode: int = 1, stderr: str = "") -> subprocess.CompletedProcess:
    """A mocked command result with a non-zero exit."""
    return subprocess.CompletedProcess(cmd, returncode=returncode, stdout="", stderr=stderr)


def gpfs(command: str, *args: str) -> tuple:
    """Mock key for a GPFS command."""
    return (f"{GPFS}/{command}", *args)


def load_fixture(category: str, name: str) -> str:
    """Load a fixture file by category and name."""
    fixture_path = FIXTURES_DIR / category / name
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture not found: {fixture_path}")
    return fixture_path.read_text()


@pytest.fixture
def mock_context():
    """Factory fixture for creating MockContext instances."""
    def _create(**kwargs) -> MockContext:
        return MockContext(**kwargs)
    return _create


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings that keep locks and logs inside tmp_path."""
    return Settings(
        gpfs_bin=GPFS,
        lock_file=str(tmp_path / "run" / "check_fileset_inodes.lock"),
        delivery_lock_file=str(tmp_path / "run" / "load_inode_data.lock"),
        log_dir=str(tmp_path / "log"),
        command_timeout=30,
    )


@pytest.fixture
def make_run(tmp_path, settings):
    """Factory fixture for RunContext instances backed by a MockContext."""
    loggers = []

    def _create(context=None, **kwargs) -> RunContext:
        logger = ScriptLogger("test", log_path=tmp_path / "log" / "test.jsonl")
        loggers.append(logger)
        return RunContext(
            context=context or MockContext(),
            settings=kwargs.pop("settings", settings),
            logger=logger,
            started_ns=NOW_NS,
            **kwargs,
        )

    yield _create
    for logger in loggers:
        logger.close()
