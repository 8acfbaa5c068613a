"""Eligibility and extension decisions for a single fileset."""

from dataclasses import dataclass
from enum import Enum

from cfi.models import NO_PARENT, ROOT_FILESET, FilesetRecord, QuotaRecord
from cfi.policy import ThresholdPolicy


class Outcome(str, Enum):
    INELIGIBLE = "ineligible"
    WITHIN_MARGIN = "within_margin"
    EXTEND = "extend"


@dataclass(frozen=True)
class Decision:
    fileset: str
    outcome: Outcome
    margin: int | None = None
    threshold: int | None = None
    new_ceiling: int | None = None
    reason: str = ""


def ineligible_reason(fileset: str, record: FilesetRecord) -> str | None:
    """First matching ineligibility rule, or None. The root fileset is always eligible."""
    if fileset == ROOT_FILESET:
        return None
    if record.parent_id == NO_PARENT:
        return "no parent fileset"
    if not record.inode_space_owner:
        return "not an independent inode space"
    if record.alloc_inodes == 0:
        return "no inodes allocated"
    return None


def decide(
    fileset: str,
    record: FilesetRecord,
    quota: QuotaRecord,
    policy: ThresholdPolicy,
) -> Decision:
    """
    Decide whether a fileset's inode limit needs raising.

    margin = max_inodes - (files_usage + files_in_doubt). Extension happens
    only when margin is strictly below the threshold; a margin equal to
    the threshold is still within margin.
    """
    reason = ineligible_reason(fileset, record)
    if reason is not None:
        return Decision(fileset=fileset, outcome=Outcome.INELIGIBLE, reason=reason)

    entry = policy.lookup(fileset)
    margin = record.max_inodes - quota.total_files

    if margin < entry.threshold:
        return Decision(
            fileset=fileset,
            outcome=Outcome.EXTEND,
            margin=margin,
            threshold=entry.threshold,
            new_ceiling=record.max_inodes + entry.increment,
        )
    return Decision(
        fileset=fileset,
        outcome=Outcome.WITHIN_MARGIN,
        margin=margin,
        threshold=entry.threshold,
    )
