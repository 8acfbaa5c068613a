"""Settings loading with layered YAML overrides."""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml


SYSTEM_SETTINGS = Path("/etc/cfi/cfi.yaml")


@dataclass(frozen=True)
class Settings:
    """Tunables that are not part of the delivery config."""

    command_timeout: int = 300
    gpfs_bin: str = "/usr/lpp/mmfs/bin"
    lock_file: str = "/var/run/cfi/check_fileset_inodes.lock"
    delivery_lock_file: str = "/var/run/cfi/load_inode_data.lock"
    export_root: str = "/export"
    log_dir: str | None = None
    thresholds_name: str = ".cfi_thresholds"
    extensions_log_name: str = ".cfi_extensions.log"

    def gpfs(self, command: str) -> str:
        """Full path of a GPFS administration command."""
        return str(Path(self.gpfs_bin) / command)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file if it exists."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def default_settings_paths() -> list[Path]:
    """System config first, user config second (later wins)."""
    return [SYSTEM_SETTINGS, Path.home() / ".config" / "cfi" / "config.yaml"]


def load_settings(paths: list[Path] | None = None) -> Settings:
    """
    Build Settings from layered YAML files.

    Args:
        paths: Files to merge in order; later files override earlier ones

    Returns:
        Settings with unknown keys ignored
    """
    if paths is None:
        paths = default_settings_paths()

    known = {f.name for f in fields(Settings)}
    merged: dict[str, Any] = {}
    for path in paths:
        data = load_config_file(path)
        merged.update({k: v for k, v in data.items() if k in known})

    if "command_timeout" in merged:
        try:
            merged["command_timeout"] = int(merged["command_timeout"])
        except (TypeError, ValueError):
            del merged["command_timeout"]
    for key in ("gpfs_bin", "lock_file", "delivery_lock_file", "export_root",
                "log_dir", "thresholds_name", "extensions_log_name"):
        if key in merged and merged[key] is not None:
            merged[key] = str(merged[key])
    return replace(Settings(), **merged)
