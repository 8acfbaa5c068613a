"""Inventory collector: mounted GPFS filesystems, quotas and filesets."""

from fnmatch import fnmatchcase
from urllib.parse import unquote

from cfi.core.runcontext import RunContext
from cfi.lib.filesystem import read_file
from cfi.lib.process import CommandError, run_command
from cfi.models import FilesetRecord, MonitoredFilesystem, QuotaRecord


GPFS_FSTYPE = "gpfs"

QUOTA_INT_FIELDS = (
    "blockUsage", "blockQuota", "blockLimit", "blockInDoubt",
    "filesUsage", "filesQuota", "filesLimit", "filesInDoubt",
)

FILESET_INT_FIELDS = ("maxInodes", "allocInodes")


class CommandFailure(CommandError):
    """A GPFS query failed or produced nothing usable."""

    pass


def parse_mounts(content: str) -> list[dict]:
    """Parse /proc/mounts content."""
    mounts = []
    for line in content.strip().split("\n"):
        if not line.strip():
            continue
        parts = line.split()
        if len(parts) >= 4:
            device, mountpoint, fstype, options = parts[:4]
            mounts.append({
                "device": device,
                "mountpoint": mountpoint,
                "fstype": fstype,
                "options": options.split(","),
            })
    return mounts


def is_ignored(device: str, ignore: list[str]) -> bool:
    """Case-sensitive substring or glob match against the ignore list."""
    for pattern in ignore:
        if not pattern:
            continue
        if pattern in device or fnmatchcase(device, pattern):
            return True
    return False


def under(path: str, root: str) -> bool:
    root = root.rstrip("/")
    return bool(root) and (path == root or path.startswith(root + "/"))


def parse_y_output(text: str, command: str) -> list[dict[str, str]]:
    """
    Decode GPFS -Y (colon-delimited) output into rows keyed by column name.

    Column names come from the HEADER line. Rows from other commands,
    rows seen before any header and rows shorter than the header are
    dropped. Values are percent-decoded.
    """
    rows = []
    header: list[str] | None = None
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        fields = line.split(":")
        if len(fields) < 3 or fields[0] != command:
            continue
        if fields[2] == "HEADER":
            header = fields
            continue
        if header is None or len(fields) < len(header) - 1:
            continue
        row = {}
        for i, name in enumerate(header):
            if i < 3 or not name or name == "reserved":
                continue
            row[name] = unquote(fields[i]) if i < len(fields) else ""
        rows.append(row)
    return rows


def _ints(row: dict[str, str], names: tuple[str, ...]) -> dict[str, int] | None:
    values = {}
    for name in names:
        try:
            values[name] = int(row[name])
        except (KeyError, ValueError):
            return None
    return values


def parse_quota(text: str, filesystem: str = "") -> dict[str, QuotaRecord]:
    """Build QuotaRecords from mmrepquota -j -Y output."""
    quotas = {}
    for row in parse_y_output(text, "mmrepquota"):
        if row.get("quotaType", "FILESET") != "FILESET":
            continue
        name = row.get("name") or row.get("filesetname")
        values = _ints(row, QUOTA_INT_FIELDS)
        if not name or values is None:
            continue
        quotas[name] = QuotaRecord(
            fileset=name,
            filesystem=row.get("filesystemName") or filesystem,
            block_usage=values["blockUsage"],
            block_quota=values["blockQuota"],
            block_limit=values["blockLimit"],
            block_in_doubt=values["blockInDoubt"],
            files_usage=values["filesUsage"],
            files_quota=values["filesQuota"],
            files_limit=values["filesLimit"],
            files_in_doubt=values["filesInDoubt"],
        )
    return quotas


def parse_filesets(text: str) -> dict[str, FilesetRecord]:
    """Build FilesetRecords from mmlsfileset -L -Y output."""
    filesets = {}
    for row in parse_y_output(text, "mmlsfileset"):
        name = row.get("filesetName")
        values = _ints(row, FILESET_INT_FIELDS)
        if not name or values is None:
            continue
        filesets[name] = FilesetRecord(
            name=name,
            parent_id=row.get("parentId", "").strip() or "--",
            inode_space_owner=row.get("isInodeSpaceOwner", "0").strip() == "1",
            max_inodes=values["maxInodes"],
            alloc_inodes=values["allocInodes"],
            fileset_id=row.get("id", ""),
            path=row.get("path", ""),
            status=row.get("status", ""),
        )
    return filesets


def parse_quota_accounting(text: str) -> set[str]:
    """Return the quota types enabled per mmlsfs -Q -Y output."""
    for row in parse_y_output(text, "mmlsfs"):
        if row.get("fieldName") == "quotasAccountingEnabled":
            data = row.get("data", "")
            return {part.strip() for part in data.replace(",", ";").split(";") if part.strip()}
    return set()


class Collector:
    """
    Loads GPFS facts into records.

    The decision engine only ever sees the records; all command text
    stays behind this class.
    """

    def __init__(self, run: RunContext):
        self.run = run

    def _query(self, cmd: list[str]) -> str:
        result = run_command(cmd, context=self.run.context, timeout=self.run.settings.command_timeout)
        if not result.ok:
            self.run.logger.error(
                "command failed", command=cmd, returncode=result.returncode, error=result.message
            )
            raise CommandFailure(cmd, result.returncode, result.message)
        self.run.dump(" ".join(cmd), result.stdout)
        return result.stdout

    def discover_filesystems(self) -> list[MonitoredFilesystem]:
        """
        List mounted GPFS filesystems, minus bind mounts under the export
        root and ignored devices.

        Raises:
            FileError: If /proc/mounts cannot be read
        """
        content = read_file("/proc/mounts", context=self.run.context)
        export_root = self.run.settings.export_root

        found: dict[str, MonitoredFilesystem] = {}
        for mount in parse_mounts(content):
            if mount["fstype"] != GPFS_FSTYPE:
                continue
            device = mount["device"].split("/")[-1]
            if under(mount["mountpoint"], export_root):
                continue
            if is_ignored(device, self.run.ignore):
                self.run.say(f"{device}: ignored")
                continue
            found.setdefault(device, MonitoredFilesystem(device=device, mountpoint=mount["mountpoint"]))

        return [found[d] for d in sorted(found)]

    def quota_enabled(self, fs: MonitoredFilesystem) -> bool:
        """True when fileset quota accounting is on for fs."""
        text = self._query(self.run.gpfs("mmlsfs", fs.device, "-Q", "-Y"))
        return "fileset" in parse_quota_accounting(text)

    def load_quota(self, fs: MonitoredFilesystem) -> dict[str, QuotaRecord]:
        cmd = self.run.gpfs("mmrepquota", "-j", "-Y", fs.device)
        quotas = parse_quota(self._query(cmd), filesystem=fs.device)
        if not quotas:
            raise CommandFailure(cmd, 0, "no fileset quota records in output")
        return quotas

    def load_filesets(self, fs: MonitoredFilesystem) -> dict[str, FilesetRecord]:
        cmd = self.run.gpfs("mmlsfileset", fs.device, "-L", "-Y")
        filesets = parse_filesets(self._query(cmd))
        if not filesets:
            raise CommandFailure(cmd, 0, "no fileset records in output")
        return filesets
