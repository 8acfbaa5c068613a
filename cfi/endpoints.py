"""Delivery endpoint configuration (/etc/cfi/cfi.cfg)."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from cfi.lib.filesystem import FileError, read_file

if TYPE_CHECKING:
    from cfi.core.context import Context


DEFAULT_CONFIG = Path("/etc/cfi/cfi.cfg")

SPOOL_KEYS = ("gpfs_cluster", "influx_metric", "influx_output")


class EndpointConfigError(Exception):
    """Delivery config is missing or incomplete."""

    pass


@dataclass(frozen=True)
class Endpoint:
    name: str
    url: str
    db: str

    @property
    def write_url(self) -> str:
        query = urlencode({"db": self.db, "precision": "ns"})
        return f"{self.url.rstrip('/')}/write?{query}"


@dataclass(frozen=True)
class EndpointConfig:
    cluster: str
    metric: str
    output_dir: Path
    curl: str = "/usr/bin/curl"
    proxy: str | None = None
    user: str | None = None
    password: str | None = None
    url: str | None = None
    db: str | None = None
    url_secondary: str | None = None
    db_secondary: str | None = None

    @property
    def spool_prefix(self) -> str:
        return f"{self.cluster}.{self.metric}."

    def check_delivery(self) -> None:
        """Raise EndpointConfigError unless a primary endpoint is configured."""
        if not self.url or not self.db:
            raise EndpointConfigError("influx_url and influx_db are required for delivery")

    @property
    def primary(self) -> Endpoint:
        self.check_delivery()
        return Endpoint("primary", self.url, self.db)

    @property
    def secondary(self) -> Endpoint | None:
        if not self.url_secondary:
            return None
        return Endpoint("secondary", self.url_secondary, self.db_secondary or self.db or "")


def parse_key_values(text: str) -> dict[str, str]:
    """Parse `key = value` lines, skipping blanks and # comments."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip()
    return values


def parse_endpoints(text: str) -> EndpointConfig:
    """
    Build an EndpointConfig from config text.

    Raises:
        EndpointConfigError: If a spool naming key is missing
    """
    values = parse_key_values(text)
    missing = [key for key in SPOOL_KEYS if not values.get(key)]
    if missing:
        raise EndpointConfigError(f"Missing config keys: {', '.join(missing)}")

    return EndpointConfig(
        cluster=values["gpfs_cluster"],
        metric=values["influx_metric"],
        output_dir=Path(values["influx_output"]),
        curl=values.get("influx_curl") or "/usr/bin/curl",
        proxy=values.get("influx_proxy") or None,
        user=values.get("influx_user") or None,
        password=values.get("influx_password") or None,
        url=values.get("influx_url") or None,
        db=values.get("influx_db") or None,
        url_secondary=values.get("influx_url_secondary") or None,
        db_secondary=values.get("influx_db_secondary") or None,
    )


def load_endpoints(path: Path = DEFAULT_CONFIG, context: "Context | None" = None) -> EndpointConfig:
    """
    Load delivery config.

    Raises:
        EndpointConfigError: If the file is unreadable or incomplete
    """
    try:
        text = read_file(str(path), context=context)
    except FileError as e:
        raise EndpointConfigError(str(e))
    return parse_endpoints(text)
