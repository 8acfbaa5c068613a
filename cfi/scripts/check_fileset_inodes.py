#!/usr/bin/env python3
"""
Raise GPFS fileset inode limits before they run out.

For every mounted GPFS filesystem with fileset quota accounting, each
independent fileset whose remaining inodes fall below its threshold gets
its limit raised by the configured increment. Usage for every eligible
fileset is spooled for load_inode_data.

Runs only on the cluster manager node (unless --force) and only one
instance at a time.

Exit codes:
    0: Success, or nothing to do
    1: Not the cluster manager
    2: Another instance is running
    3: A filesystem or limit change failed, or the lock file is unusable
"""

import argparse
import sys
from pathlib import Path

from cfi.collector import Collector, CommandFailure
from cfi.core.config import default_settings_paths, load_settings
from cfi.core.context import Context
from cfi.core.logging import ScriptLogger, get_log_path
from cfi.core.output import Output
from cfi.core.runcontext import RunContext
from cfi.decision import Outcome, decide
from cfi.endpoints import DEFAULT_CONFIG, EndpointConfigError, load_endpoints
from cfi.gate import GateError, acquire
from cfi.lib.filesystem import FileError
from cfi.models import MonitoredFilesystem
from cfi.policy import PolicyError, load_policy
from cfi.remediation import ApplyFailed, apply
from cfi.telemetry import SpoolWriter


SCRIPT_NAME = "check_fileset_inodes"
EXIT_FAILURES = 3


def split_ignore(values: list[str] | None) -> list[str]:
    """Flatten repeatable, comma-joined --ignore values."""
    ignore = []
    for value in values or []:
        ignore.extend(part.strip() for part in value.split(",") if part.strip())
    return ignore


def process_filesystem(
    run: RunContext,
    collector: Collector,
    fs: MonitoredFilesystem,
    writer: SpoolWriter | None,
) -> dict:
    """
    Decide, remediate and spool every fileset of one filesystem.

    Raises:
        CommandFailure: If a GPFS query fails
        PolicyError: If the threshold table cannot be loaded
    """
    report = {
        "filesystem": fs.device,
        "status": "ok",
        "checked": 0,
        "extended": [],
        "failed": [],
        "warnings": [],
    }

    if not collector.quota_enabled(fs):
        report["status"] = "skipped"
        run.logger.info("fileset quota accounting disabled", filesystem=fs.device)
        return report

    policy_path = Path(fs.mountpoint) / run.settings.thresholds_name
    policy = load_policy(policy_path, context=run.context)
    if policy.created:
        print(f"{fs.device}: created default policy {policy_path}")
        run.logger.warning("policy missing, default created", filesystem=fs.device, path=str(policy_path))
    for warning in policy.warnings:
        run.say(f"{fs.device}: {policy_path}: {warning}")
        run.logger.warning("policy line ignored", filesystem=fs.device, detail=warning)

    quotas = collector.load_quota(fs)
    filesets = collector.load_filesets(fs)

    for name in sorted(filesets):
        record = filesets[name]
        quota = quotas.get(name)
        if quota is None:
            run.say(f"{fs.device}:{name}: no quota record, skipping")
            continue

        decision = decide(name, record, quota, policy)
        if decision.outcome is Outcome.INELIGIBLE:
            run.say(f"{fs.device}:{name}: ineligible ({decision.reason})")
            continue

        report["checked"] += 1
        if writer is not None:
            writer.emit(fs, name, quota)

        if decision.outcome is Outcome.WITHIN_MARGIN:
            run.say(
                f"{fs.device}:{name}: {decision.margin} inodes free, threshold {decision.threshold}"
            )
            continue

        result = apply(run, fs, record, decision.new_ceiling)
        if isinstance(result, ApplyFailed):
            status = "timed out" if result.returncode is None else f"status {result.returncode}"
            print(
                f"Error: {fs.device}:{name} inode limit {result.attempted_ceiling} not applied "
                f"({status}): {result.error}",
                file=sys.stderr,
            )
            report["failed"].append({
                "fileset": name,
                "attempted": result.attempted_ceiling,
                "error": result.error,
            })
        else:
            report["extended"].append({
                "fileset": name,
                "old_max": result.old_max,
                "new_max": result.new_max,
            })
            if result.log_error:
                report["warnings"].append(f"{fs.device}:{name}: {result.log_error}")

    return report


def run(args: list[str], output: Output, context: Context) -> int:
    """
    Main entry point.

    Args:
        args: Command-line arguments
        output: Output helper
        context: Execution context

    Returns:
        0 = ok, 1 = not coordinator, 2 = already running, 3 = failures
    """
    parser = argparse.ArgumentParser(
        prog="check-fileset-inodes",
        description="Raise GPFS fileset inode limits before exhaustion",
    )
    parser.add_argument("-i", "--ignore", action="append", metavar="DEV[,DEV...]",
                        help="Skip filesystems whose device matches (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Explain skips and margins")
    parser.add_argument("-d", "--debug", action="store_true", help="Dump raw command output")
    parser.add_argument("-f", "--force", action="store_true", help="Run even if not the cluster manager")
    parser.add_argument("-n", "--no-metrics", action="store_true", help="Do not spool telemetry")
    parser.add_argument("--dry-run", action="store_true", help="Decide but do not change limits")
    parser.add_argument("-c", "--config", type=Path, default=DEFAULT_CONFIG,
                        help=f"Delivery config (default: {DEFAULT_CONFIG})")
    parser.add_argument("--settings", type=Path, action="append",
                        help="Extra YAML settings file (repeatable, later wins)")
    parser.add_argument("--format", choices=["plain", "json"], default="plain")
    opts = parser.parse_args(args)

    settings = load_settings(default_settings_paths() + (opts.settings or []))
    started_ns = context.now_ns()
    log_base = Path(settings.log_dir) if settings.log_dir else None
    logger = ScriptLogger(SCRIPT_NAME, log_path=get_log_path(SCRIPT_NAME, log_base))

    run_ctx = RunContext(
        context=context,
        settings=settings,
        logger=logger,
        started_ns=started_ns,
        ignore=split_ignore(opts.ignore),
        verbose=opts.verbose,
        debug=opts.debug,
        force=opts.force,
        metrics=not opts.no_metrics,
        dry_run=opts.dry_run,
    )
    logger.run_id = run_ctx.run_id

    try:
        return _monitor(run_ctx, opts, output)
    finally:
        logger.close()


def _monitor(run_ctx: RunContext, opts: argparse.Namespace, output: Output) -> int:
    logger = run_ctx.logger
    try:
        gate = acquire(run_ctx)
    except GateError as e:
        print(f"{e}", file=sys.stderr)
        logger.error("gate refused run", reason=str(e), exit_code=e.exit_code)
        output.error(str(e))
        return e.exit_code
    logger.info("run started", coordinator=gate.coordinator, forced=gate.forced, dry_run=run_ctx.dry_run)

    writer = None
    if run_ctx.metrics:
        try:
            run_ctx.endpoints = load_endpoints(opts.config, context=run_ctx.context)
        except EndpointConfigError as e:
            output.warning(f"Telemetry disabled: {e}")
            logger.warning("telemetry disabled", reason=str(e))
            run_ctx.metrics = False
        else:
            writer = SpoolWriter(
                run_ctx,
                run_ctx.endpoints.output_dir,
                run_ctx.endpoints.cluster,
                run_ctx.endpoints.metric,
            )

    collector = Collector(run_ctx)
    try:
        filesystems = collector.discover_filesystems()
    except FileError as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.error("filesystem discovery failed", error=str(e))
        output.error(str(e))
        return EXIT_FAILURES

    if not filesystems:
        run_ctx.say("No GPFS filesystems mounted")

    reports = []
    failures = 0
    for fs in filesystems:
        try:
            report = process_filesystem(run_ctx, collector, fs, writer)
        except (CommandFailure, PolicyError, OSError) as e:
            failures += 1
            print(f"Error: {fs.device}: {e}", file=sys.stderr)
            logger.error("filesystem aborted", filesystem=fs.device, error=str(e))
            output.error(f"{fs.device}: {e}")
            reports.append({"filesystem": fs.device, "status": "failed", "error": str(e)})
            continue

        if report["status"] == "skipped":
            message = f"{fs.device}: fileset quota accounting disabled, skipped"
            run_ctx.say(message)
            output.warning(message)
        for warning in report["warnings"]:
            output.warning(warning)
        for failed in report["failed"]:
            failures += 1
            output.error(f"{fs.device}:{failed['fileset']}: {failed['error']}")
        reports.append(report)

    spool = writer.finalize() if writer is not None else None
    if writer is not None and writer.error:
        output.warning(f"Telemetry disabled: {writer.error}")

    extended = sum(len(r.get("extended", [])) for r in reports)
    output.emit({
        "filesystems": [
            {"filesystem": r["filesystem"], "status": r["status"], "checked": r.get("checked", 0)}
            for r in reports
        ],
        "extended": [
            {"filesystem": r["filesystem"], **e}
            for r in reports for e in r.get("extended", [])
        ],
        "spool": str(spool) if spool else None,
    })
    output.set_summary(f"{len(reports)} filesystems, {extended} extended, {failures} failures")
    logger.info("run finished", filesystems=len(reports), extended=extended, failures=failures)

    if run_ctx.verbose or run_ctx.debug or opts.format == "json":
        output.render(opts.format, title="Fileset inode check")

    return EXIT_FAILURES if failures else 0


if __name__ == "__main__":
    sys.exit(run(sys.argv[1:], Output(), Context()))
