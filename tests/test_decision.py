"""Tests for the eligibility and decision engine."""

import pytest

from cfi.decision import Decision, Outcome, decide, ineligible_reason
from cfi.models import FilesetRecord, QuotaRecord
from cfi.policy import PolicyEntry, ThresholdPolicy


def fileset(name="proj1", parent_id="0", owner=True, max_inodes=1_000_000, alloc=1_000_000):
    return FilesetRecord(
        name=name,
        parent_id=parent_id,
        inode_space_owner=owner,
        max_inodes=max_inodes,
        alloc_inodes=alloc,
    )


def quota(name="proj1", files=0, in_doubt=0):
    return QuotaRecord(
        fileset=name,
        filesystem="gpfs01",
        block_usage=0,
        block_quota=0,
        block_limit=0,
        block_in_doubt=0,
        files_usage=files,
        files_quota=0,
        files_limit=0,
        files_in_doubt=in_doubt,
    )


@pytest.fixture
def policy():
    return ThresholdPolicy(entries={"root": PolicyEntry(150_000, 250_000)})


class TestScenarios:
    """Worked examples."""

    def test_scenario_a_extends(self, policy):
        """In-doubt inodes push the margin under the threshold."""
        decision = decide("proj1", fileset(), quota(files=860_000, in_doubt=10_000), policy)

        assert decision.outcome is Outcome.EXTEND
        assert decision.margin == 130_000
        assert decision.new_ceiling == 1_250_000

    def test_scenario_b_within_margin(self, policy):
        decision = decide("proj1", fileset(), quota(files=700_000), policy)

        assert decision.outcome is Outcome.WITHIN_MARGIN
        assert decision.margin == 300_000
        assert decision.new_ceiling is None

    def test_scenario_c_orphan_ineligible(self, policy):
        record = fileset(name="snap1", parent_id="--")
        decision = decide("snap1", record, quota("snap1", files=999_999), policy)

        assert decision.outcome is Outcome.INELIGIBLE
        assert decision.margin is None


class TestEligibility:
    """Tests for the ordered ineligibility rules."""

    @pytest.mark.parametrize("files", [0, 500_000, 999_999, 2_000_000])
    def test_no_parent_is_ineligible_regardless_of_usage(self, policy, files):
        record = fileset(name="snap1", parent_id="--")
        decision = decide("snap1", record, quota("snap1", files=files), policy)
        assert decision.outcome is Outcome.INELIGIBLE
        assert decision.reason == "no parent fileset"

    def test_dependent_fileset_ineligible(self, policy):
        record = fileset(name="dep1", owner=False, max_inodes=0, alloc=0)
        decision = decide("dep1", record, quota("dep1", files=10), policy)
        assert decision.outcome is Outcome.INELIGIBLE
        assert decision.reason == "not an independent inode space"

    def test_zero_allocated_ineligible(self, policy):
        record = fileset(name="empty1", alloc=0)
        decision = decide("empty1", record, quota("empty1"), policy)
        assert decision.outcome is Outcome.INELIGIBLE
        assert decision.reason == "no inodes allocated"

    def test_rules_apply_in_order(self):
        """The parent rule wins over the later rules."""
        record = fileset(name="x", parent_id="--", owner=False, alloc=0)
        assert ineligible_reason("x", record) == "no parent fileset"

    def test_root_always_eligible(self, policy):
        """root has no parent and may not look like an owner, but is still checked."""
        record = fileset(name="root", parent_id="--", owner=False, max_inodes=1_000_000, alloc=0)
        decision = decide("root", record, quota("root", files=900_000), policy)
        assert decision.outcome is Outcome.EXTEND
        assert decision.new_ceiling == 1_250_000


class TestThresholds:
    """Tests for margin comparison and policy lookup."""

    def test_margin_equal_to_threshold_is_within_margin(self, policy):
        decision = decide("proj1", fileset(), quota(files=850_000), policy)
        assert decision.margin == 150_000
        assert decision.outcome is Outcome.WITHIN_MARGIN

    def test_one_below_threshold_extends(self, policy):
        decision = decide("proj1", fileset(), quota(files=850_001), policy)
        assert decision.margin == 149_999
        assert decision.outcome is Outcome.EXTEND

    @pytest.mark.parametrize("max_inodes,used", [(1, 1), (100_000, 0), (5_000_000, 4_900_000)])
    def test_new_ceiling_is_max_plus_increment(self, policy, max_inodes, used):
        record = fileset(max_inodes=max_inodes, alloc=max_inodes)
        decision = decide("proj1", record, quota(files=used), policy)
        assert decision.outcome is Outcome.EXTEND
        assert decision.new_ceiling == max_inodes + 250_000
        assert decision.new_ceiling > max_inodes

    def test_over_limit_gives_negative_margin(self, policy):
        decision = decide("proj1", fileset(), quota(files=1_000_000, in_doubt=5), policy)
        assert decision.margin == -5
        assert decision.outcome is Outcome.EXTEND

    def test_fileset_specific_entry(self):
        policy = ThresholdPolicy(entries={
            "root": PolicyEntry(150_000, 250_000),
            "proj1": PolicyEntry(10_000, 50_000),
        })
        decision = decide("proj1", fileset(), quota(files=860_000, in_doubt=10_000), policy)
        assert decision.outcome is Outcome.WITHIN_MARGIN
        assert decision.threshold == 10_000

    def test_fallback_uses_root_entry_exactly(self):
        policy = ThresholdPolicy(entries={
            "root": PolicyEntry(42_000, 7_000),
            "other": PolicyEntry(1, 1),
        })
        decision = decide("proj1", fileset(), quota(files=960_000), policy)
        assert decision.threshold == 42_000
        assert decision.new_ceiling == 1_007_000

    def test_decide_is_idempotent(self, policy):
        args = ("proj1", fileset(), quota(files=860_000, in_doubt=10_000), policy)
        first = decide(*args)
        second = decide(*args)
        assert first == second
        assert isinstance(first, Decision)
