"""Core cfi functionality."""

from cfi.core.config import Settings, load_settings
from cfi.core.context import Context
from cfi.core.logging import ScriptLogger, get_log_path
from cfi.core.output import Output
from cfi.core.runcontext import RunContext

__all__ = [
    "Context",
    "Output",
    "RunContext",
    "ScriptLogger",
    "Settings",
    "get_log_path",
    "load_settings",
]
