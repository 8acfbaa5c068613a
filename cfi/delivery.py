"""Spool delivery agent: push leftover spool files to InfluxDB."""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from cfi.core.runcontext import RunContext
from cfi.endpoints import Endpoint, EndpointConfig
from cfi.lib.filesystem import remove_file
from cfi.lib.process import run_command


PRIMARY_SUFFIX = ".primary"
SECONDARY_SUFFIX = ".secondary"


@dataclass(frozen=True)
class Delivered:
    path: Path
    endpoint: str
    removed: bool = True


@dataclass(frozen=True)
class DeliveryFailed:
    path: Path
    endpoint: str
    returncode: int | None
    message: str


DeliveryResult = Union[Delivered, DeliveryFailed]


@dataclass
class DeliveryReport:
    delivered: list[Delivered] = field(default_factory=list)
    failed: list[DeliveryFailed] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def add(self, result: DeliveryResult) -> None:
        if isinstance(result, Delivered):
            self.delivered.append(result)
        else:
            self.failed.append(result)


class DeliveryAgent:
    """
    At-least-once delivery of spool files.

    A file is removed only after its own transmission succeeded. With a
    secondary endpoint configured, each spool file is first split into
    `.primary` and `.secondary` copies so the two endpoints succeed, fail
    and retry independently.
    """

    def __init__(self, run: RunContext, endpoints: EndpointConfig):
        self.run = run
        self.endpoints = endpoints

    def pending(self) -> list[Path]:
        """Spool files (primary and secondary copies) awaiting delivery, sorted."""
        output_dir = self.endpoints.output_dir
        if not output_dir.is_dir():
            return []
        prefix = self.endpoints.spool_prefix
        return sorted(
            p for p in output_dir.iterdir()
            if p.name.startswith(prefix) and p.is_file()
        )

    def transmit_command(self, path: Path, endpoint: Endpoint) -> list[str]:
        cmd = [self.endpoints.curl, "-s", "-S", "-f", "-XPOST"]
        if self.endpoints.proxy:
            cmd += ["-x", self.endpoints.proxy]
        if self.endpoints.user:
            cmd += ["-K", "-"]
        cmd += [endpoint.write_url, "--data-binary", f"@{path}"]
        return cmd

    def curl_config(self) -> str | None:
        """Credentials for curl's `-K -`, kept off the command line."""
        if not self.endpoints.user:
            return None
        credentials = f"{self.endpoints.user}:{self.endpoints.password or ''}"
        quoted = credentials.replace("\\", "\\\\").replace('"', '\\"')
        return f'user = "{quoted}"\n'

    def transmit(self, path: Path, endpoint: Endpoint) -> DeliveryResult:
        """Send one file; remove it only on success."""
        cmd = self.transmit_command(path, endpoint)
        result = run_command(
            cmd,
            context=self.run.context,
            timeout=self.run.settings.command_timeout,
            input=self.curl_config(),
        )
        if not result.ok:
            self.run.logger.error(
                "delivery failed",
                file=str(path),
                endpoint=endpoint.name,
                returncode=result.returncode,
                error=result.message,
            )
            return DeliveryFailed(path, endpoint.name, result.returncode, result.message)

        removed = remove_file(path)
        self.run.logger.info("delivered", file=str(path), endpoint=endpoint.name, removed=removed)
        self.run.say(f"Delivered {path.name} to {endpoint.name}")
        return Delivered(path, endpoint.name, removed)

    def split(self, path: Path) -> None:
        """
        Fan a fresh spool file out into per-endpoint copies.

        The copy is made before the rename, so a crash in between only
        means the split is redone on the next pass.
        """
        shutil.copyfile(path, path.with_name(path.name + SECONDARY_SUFFIX))
        os.replace(path, path.with_name(path.name + PRIMARY_SUFFIX))

    def deliver_pending(self) -> DeliveryReport:
        report = DeliveryReport()
        primary = self.endpoints.primary
        secondary = self.endpoints.secondary

        if secondary is not None:
            for path in self.pending():
                if path.name.endswith((PRIMARY_SUFFIX, SECONDARY_SUFFIX)):
                    continue
                try:
                    self.split(path)
                except FileNotFoundError:
                    # delivered by an overlapping agent run
                    continue

        stranded = 0
        for path in self.pending():
            if not path.name.endswith(SECONDARY_SUFFIX):
                report.add(self.transmit(path, primary))
            elif secondary is not None:
                report.add(self.transmit(path, secondary))
            else:
                stranded += 1

        if stranded:
            self.run.logger.warning("secondary copies left but no secondary endpoint", count=stranded)
        return report
