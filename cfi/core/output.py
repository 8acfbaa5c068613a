"""Structured end-of-run summary."""

import json
from typing import Any


class Output:
    """Collects run results and renders them once at the end."""

    def __init__(self):
        self.data: dict[str, Any] = {}
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self._summary: str | None = None
        self._printed: bool = False

    def emit(self, data: dict[str, Any]) -> None:
        """Store structured output data."""
        self.data.update(data)

    def error(self, message: str) -> None:
        """Record an error message."""
        self.errors.append(message)

    def warning(self, message: str) -> None:
        """Record a warning message."""
        self.warnings.append(message)

    def set_summary(self, summary: str) -> None:
        """Set a one-line summary."""
        self._summary = summary

    @property
    def summary(self) -> str:
        """Get summary or generate from data."""
        if self._summary:
            return self._summary
        if self.errors:
            return f"Error: {self.errors[0]}"
        if self.warnings:
            return f"Warning: {self.warnings[0]}"
        return "ok"

    def to_json(self) -> str:
        """Return data, errors and warnings as a JSON string."""
        payload = dict(self.data)
        payload["summary"] = self.summary
        payload["errors"] = self.errors
        payload["warnings"] = self.warnings
        return json.dumps(payload, indent=2, default=str)

    def to_plain(self, title: str | None = None) -> str:
        """Return a short human-readable report."""
        lines = []
        if title:
            lines.append(title)
            lines.append("=" * len(title))

        for key, value in self.data.items():
            label = str(key).replace("_", " ").title()
            if isinstance(value, list):
                lines.append(f"{label}:")
                if not value:
                    lines.append("  (none)")
                for item in value:
                    if isinstance(item, dict):
                        lines.append("  - " + ", ".join(f"{k}={v}" for k, v in item.items()))
                    else:
                        lines.append(f"  - {item}")
            else:
                lines.append(f"{label}: {value}")

        for warning in self.warnings:
            lines.append(f"[WARNING] {warning}")
        for error in self.errors:
            lines.append(f"[ERROR] {error}")
        lines.append(f"Summary: {self.summary}")
        return "\n".join(lines)

    def render(self, format: str = "plain", title: str | None = None) -> None:
        """Print output in the specified format, at most once."""
        if self._printed:
            return
        self._printed = True

        if format == "json":
            print(self.to_json())
        else:
            print(self.to_plain(title))
