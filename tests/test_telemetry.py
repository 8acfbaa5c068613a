"""Tests for the telemetry spool writer."""

from cfi.models import MonitoredFilesystem, QuotaRecord
from cfi.telemetry import MetricDatapoint, SpoolWriter, escape_tag, spool_name
from tests.conftest import NOW_NS


GPFS01 = MonitoredFilesystem("gpfs01", "/gpfs/gpfs01")

PROJ1 = QuotaRecord(
    fileset="proj1",
    filesystem="gpfs01",
    block_usage=52428800,
    block_quota=104857600,
    block_limit=125829120,
    block_in_doubt=1024,
    files_usage=860000,
    files_quota=0,
    files_limit=0,
    files_in_doubt=10000,
)


def test_escape_tag():
    assert escape_tag("a b,c=d") == "a\\ b\\,c\\=d"


def test_spool_name():
    assert spool_name("clusterA", "iostats", "20240101120000") == "clusterA.iostats.20240101120000"


class TestMetricDatapoint:
    """Tests for datapoint construction and formatting."""

    def test_in_doubt_folded_into_usage(self):
        point = MetricDatapoint.from_quota(GPFS01, "proj1", PROJ1, NOW_NS)
        assert point.block_usage == 52428800 + 1024
        assert point.files_usage == 870000
        assert point.block_quota == 104857600

    def test_to_line(self):
        point = MetricDatapoint.from_quota(GPFS01, "proj1", PROJ1, NOW_NS)
        line = point.to_line("inodes", "clusterA")
        assert line == (
            "inodes,cluster=clusterA,filesystem=gpfs01,fileset=proj1 "
            "blockUsage=52429824i,blockQuota=104857600i,blockLimit=125829120i,"
            "filesUsage=870000i,filesQuota=0i,filesLimit=0i "
            f"{NOW_NS}"
        )


class TestSpoolWriter:
    """Tests for SpoolWriter."""

    def test_emit_goes_to_hidden_partial(self, make_run, tmp_path):
        run = make_run()
        writer = SpoolWriter(run, tmp_path / "spool", "clusterA", "inodes")

        writer.emit(GPFS01, "proj1", PROJ1)

        assert writer.partial_path.name.startswith(".clusterA.inodes.")
        assert writer.partial_path.exists()
        assert not writer.path.exists()

    def test_finalize_publishes(self, make_run, tmp_path):
        run = make_run()
        writer = SpoolWriter(run, tmp_path / "spool", "clusterA", "inodes")
        point = writer.emit(GPFS01, "proj1", PROJ1)
        writer.emit(GPFS01, "root", PROJ1)

        path = writer.finalize()

        assert path == tmp_path / "spool" / f"clusterA.inodes.{run.run_id}"
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0] == point.to_line("inodes", "clusterA")
        assert not writer.partial_path.exists()

    def test_nothing_emitted_publishes_nothing(self, make_run, tmp_path):
        writer = SpoolWriter(make_run(), tmp_path / "spool", "clusterA", "inodes")
        assert writer.finalize() is None
        assert not (tmp_path / "spool").exists()

    def test_existing_spool_never_reopened(self, make_run, tmp_path):
        run = make_run()
        spool = tmp_path / "spool"
        spool.mkdir()
        earlier = spool / f"clusterA.inodes.{run.run_id}"
        earlier.write_text("earlier run\n")

        writer = SpoolWriter(run, spool, "clusterA", "inodes")
        writer.emit(GPFS01, "proj1", PROJ1)
        path = writer.finalize()

        assert path != earlier
        assert path.name.startswith("clusterA.inodes.")
        assert earlier.read_text() == "earlier run\n"

    def test_unwritable_output_disables_writer(self, make_run, tmp_path, capsys):
        """A spool path that is a regular file turns emission off, not the run."""
        blocker = tmp_path / "spool"
        blocker.write_text("not a directory")
        run = make_run()
        writer = SpoolWriter(run, blocker, "clusterA", "inodes")

        assert writer.emit(GPFS01, "proj1", PROJ1) is None
        assert writer.emit(GPFS01, "root", PROJ1) is None

        assert writer.error is not None
        assert writer.count == 0
        assert writer.finalize() is None
        assert capsys.readouterr().err.count("telemetry disabled") == 1
        assert "telemetry disabled" in run.logger.log_path.read_text()

    def test_publish_failure_reported(self, make_run, tmp_path):
        run = make_run()
        writer = SpoolWriter(run, tmp_path / "spool", "clusterA", "inodes")
        writer.emit(GPFS01, "proj1", PROJ1)
        writer.partial_path.unlink()

        assert writer.finalize() is None
        assert "unable to publish" in writer.error
