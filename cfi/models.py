"""Records loaded from GPFS for one monitoring pass."""

from dataclasses import dataclass


ROOT_FILESET = "root"
NO_PARENT = "--"


@dataclass(frozen=True)
class MonitoredFilesystem:
    """A mounted GPFS filesystem."""

    device: str
    mountpoint: str


@dataclass(frozen=True)
class FilesetRecord:
    """Allocation facts for one fileset (mmlsfileset -L)."""

    name: str
    parent_id: str
    inode_space_owner: bool
    max_inodes: int
    alloc_inodes: int
    fileset_id: str = ""
    path: str = ""
    status: str = ""


@dataclass(frozen=True)
class QuotaRecord:
    """
    Fileset quota accounting (mmrepquota -j).

    In-doubt counts are provisionally consumed and belong in any usage
    total; the total_* properties fold them in.
    """

    fileset: str
    filesystem: str
    block_usage: int
    block_quota: int
    block_limit: int
    block_in_doubt: int
    files_usage: int
    files_quota: int
    files_limit: int
    files_in_doubt: int

    @property
    def total_blocks(self) -> int:
        return self.block_usage + self.block_in_doubt

    @property
    def total_files(self) -> int:
        return self.files_usage + self.files_in_doubt
