"""Telemetry emitter: one spool file of InfluxDB line protocol per run."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from cfi.core.runcontext import RunContext
from cfi.lib.filesystem import append_line
from cfi.models import MonitoredFilesystem, QuotaRecord


PARTIAL_SUFFIX = ".partial"


def escape_tag(value: str) -> str:
    """Escape a line-protocol tag key or value."""
    return value.replace("\\", "\\\\").replace(",", "\\,").replace("=", "\\=").replace(" ", "\\ ")


@dataclass(frozen=True)
class MetricDatapoint:
    filesystem: str
    fileset: str
    timestamp_ns: int
    block_usage: int
    block_quota: int
    block_limit: int
    files_usage: int
    files_quota: int
    files_limit: int

    @classmethod
    def from_quota(cls, fs: MonitoredFilesystem, fileset: str, quota: QuotaRecord, timestamp_ns: int):
        """Usage totals include the in-doubt counts."""
        return cls(
            filesystem=fs.device,
            fileset=fileset,
            timestamp_ns=timestamp_ns,
            block_usage=quota.total_blocks,
            block_quota=quota.block_quota,
            block_limit=quota.block_limit,
            files_usage=quota.total_files,
            files_quota=quota.files_quota,
            files_limit=quota.files_limit,
        )

    def to_line(self, metric: str, cluster: str) -> str:
        tags = ",".join([
            escape_tag(metric),
            f"cluster={escape_tag(cluster)}",
            f"filesystem={escape_tag(self.filesystem)}",
            f"fileset={escape_tag(self.fileset)}",
        ])
        fields = ",".join([
            f"blockUsage={self.block_usage}i",
            f"blockQuota={self.block_quota}i",
            f"blockLimit={self.block_limit}i",
            f"filesUsage={self.files_usage}i",
            f"filesQuota={self.files_quota}i",
            f"filesLimit={self.files_limit}i",
        ])
        return f"{tags} {fields} {self.timestamp_ns}"


def spool_name(cluster: str, metric: str, run_id: str) -> str:
    return f"{cluster}.{metric}.{run_id}"


class SpoolWriter:
    """
    Appends a run's datapoints to a hidden partial file and publishes it
    under the delivery name only when the run finishes.

    The delivery agent matches on `{cluster}.{metric}.`, so the leading
    dot of the partial file keeps an interrupted run's data out of
    delivery.

    Telemetry never stops remediation: the first write error is logged,
    kept in `error`, and turns every later emit into a no-op.
    """

    def __init__(self, run: RunContext, output_dir: Path, cluster: str, metric: str):
        self.run = run
        self.output_dir = output_dir
        self.cluster = cluster
        self.metric = metric
        self.name = spool_name(cluster, metric, run.run_id)
        self.partial_path = output_dir / f".{self.name}{PARTIAL_SUFFIX}"
        self.count = 0
        self.error: str | None = None

    @property
    def path(self) -> Path:
        return self.output_dir / self.name

    def _disable(self, message: str) -> None:
        self.error = message
        print(f"Warning: telemetry disabled: {message}", file=sys.stderr)
        self.run.logger.error("telemetry disabled", error=message, datapoints=self.count)

    def emit(self, fs: MonitoredFilesystem, fileset: str, quota: QuotaRecord) -> MetricDatapoint | None:
        """Append one datapoint; returns None once the spool is unusable."""
        if self.error is not None:
            return None
        point = MetricDatapoint.from_quota(fs, fileset, quota, self.run.context.now_ns())
        try:
            if self.count == 0:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            append_line(self.partial_path, point.to_line(self.metric, self.cluster))
        except OSError as e:
            self._disable(f"unable to write {self.partial_path}: {e}")
            return None
        self.count += 1
        return point

    def finalize(self) -> Path | None:
        """
        Publish the spool file.

        Returns:
            The delivery-eligible path, or None if nothing usable was written
        """
        if self.count == 0 or self.error is not None:
            return None

        final = self.path
        n = 1
        while final.exists():
            final = self.output_dir / f"{self.name}-{n}"
            n += 1
        try:
            os.replace(self.partial_path, final)
        except OSError as e:
            self._disable(f"unable to publish {final}: {e}")
            return None
        self.run.logger.info("spool published", path=str(final), datapoints=self.count)
        return final
