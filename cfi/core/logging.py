"""JSONL logging for monitor and delivery runs."""

import json
import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any


def get_log_path(script_name: str, base_path: Path | None = None) -> Path:
    """
    Get the log file path for a script.

    Args:
        script_name: Name of the script (without .py extension)
        base_path: Base directory for logs (default: ~/var/log/cfi)

    Returns:
        Path to the log file: {base}/{date}/{script}.jsonl
    """
    if base_path is None:
        home = Path(os.environ.get("HOME", "/tmp"))
        base_path = home / "var" / "log" / "cfi"

    today = date.today().isoformat()
    return base_path / today / f"{script_name}.jsonl"


class ScriptLogger:
    """
    JSONL logger for a single run.

    Every entry carries the run id so the monitor and delivery runs
    that share a day's log can be told apart.
    """

    def __init__(self, script_name: str, log_path: Path | None = None, run_id: str | None = None):
        self.script_name = script_name
        self.log_path = log_path or get_log_path(script_name)
        self.run_id = run_id
        self._file = None

    def _ensure_file(self) -> None:
        """Ensure log file is open."""
        if self._file is None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.log_path, "a")

    def _log(self, level: str, message: str, **extra: Any) -> None:
        """Write a log entry."""
        self._ensure_file()
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "script": self.script_name,
            "message": message,
        }
        if self.run_id:
            entry["run"] = self.run_id
        entry.update(extra)
        self._file.write(json.dumps(entry, default=str) + "\n")
        self._file.flush()

    def debug(self, message: str, **extra: Any) -> None:
        self._log("debug", message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        self._log("info", message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self._log("warning", message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        self._log("error", message, **extra)

    def close(self) -> None:
        """Close the log file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "ScriptLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
