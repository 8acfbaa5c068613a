"""Tests for cfi.core.runcontext module."""

from datetime import datetime

from tests.conftest import GPFS, NOW_NS


def test_run_id_from_start_time(make_run):
    run = make_run()
    assert run.run_id == datetime.fromtimestamp(NOW_NS / 1e9).strftime("%Y%m%d%H%M%S")


def test_gpfs_command_line(make_run):
    assert make_run().gpfs("mmlsfs", "gpfs01", "-Q", "-Y") == [f"{GPFS}/mmlsfs", "gpfs01", "-Q", "-Y"]


def test_say_only_when_verbose(make_run, capsys):
    make_run().say("quiet")
    make_run(verbose=True).say("loud")
    assert capsys.readouterr().out == "loud\n"


def test_dump_only_when_debugging(make_run, capsys):
    make_run(verbose=True).dump("mmlsmgr -c", "hidden\n")
    make_run(debug=True).dump("mmlsmgr -c", "shown\n")

    captured = capsys.readouterr()
    assert "hidden" not in captured.err
    assert "--- mmlsmgr -c ---\nshown\n--- end mmlsmgr -c ---" in captured.err
    assert captured.out == ""
