#!/usr/bin/env python3
"""
Deliver spooled fileset usage datapoints to InfluxDB.

Each `{cluster}.{metric}.*` file in the spool directory is posted to the
primary endpoint and, when configured, a `.secondary` copy to the
secondary endpoint. Files are removed only after their own delivery
succeeds; anything that fails stays for the next run.

Exit codes:
    0: Everything pending was delivered (or nothing was pending)
    1: Some deliveries failed and were left for retry
    2: Usage or configuration error, or the lock file is unusable
"""

import argparse
import os
import sys
from pathlib import Path

from cfi.core.config import default_settings_paths, load_settings
from cfi.core.context import Context
from cfi.core.logging import ScriptLogger, get_log_path
from cfi.core.output import Output
from cfi.core.runcontext import RunContext
from cfi.delivery import DeliveryAgent
from cfi.endpoints import DEFAULT_CONFIG, EndpointConfigError, load_endpoints
from cfi.gate import AlreadyRunning, LockUnavailable, acquire_lock


SCRIPT_NAME = "load_inode_data"


def run(args: list[str], output: Output, context: Context) -> int:
    """
    Main entry point.

    Args:
        args: Command-line arguments
        output: Output helper
        context: Execution context

    Returns:
        0 = delivered, 1 = failures left for retry, 2 = config or lock error
    """
    parser = argparse.ArgumentParser(
        prog="load-inode-data",
        description="Deliver spooled fileset inode datapoints",
    )
    parser.add_argument("-c", "--config", type=Path, default=DEFAULT_CONFIG,
                        help=f"Delivery config (default: {DEFAULT_CONFIG})")
    parser.add_argument("--settings", type=Path, action="append",
                        help="Extra YAML settings file (repeatable, later wins)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Report each delivery")
    parser.add_argument("--format", choices=["plain", "json"], default="plain")
    opts = parser.parse_args(args)

    settings = load_settings(default_settings_paths() + (opts.settings or []))
    log_base = Path(settings.log_dir) if settings.log_dir else None

    with ScriptLogger(SCRIPT_NAME, log_path=get_log_path(SCRIPT_NAME, log_base)) as logger:
        run_ctx = RunContext(
            context=context,
            settings=settings,
            logger=logger,
            started_ns=context.now_ns(),
            verbose=opts.verbose,
        )
        logger.run_id = run_ctx.run_id

        try:
            run_ctx.endpoints = load_endpoints(opts.config, context=context)
            run_ctx.endpoints.check_delivery()
        except EndpointConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            logger.error("bad delivery config", error=str(e))
            output.error(str(e))
            return 2

        try:
            lock_fd = acquire_lock(Path(settings.delivery_lock_file))
        except AlreadyRunning as e:
            run_ctx.say(f"Skipping: {e}")
            logger.info("another delivery run active", reason=str(e))
            return 0
        except LockUnavailable as e:
            print(f"Error: {e}", file=sys.stderr)
            logger.error("delivery lock unavailable", error=str(e))
            output.error(str(e))
            return 2

        try:
            report = DeliveryAgent(run_ctx, run_ctx.endpoints).deliver_pending()
        finally:
            os.close(lock_fd)

        for failure in report.failed:
            status = "timeout" if failure.returncode is None else failure.returncode
            print(f"Error: {status} on {failure.path} ({failure.endpoint})", file=sys.stderr)
            output.error(f"{failure.path.name} to {failure.endpoint}: {failure.message or status}")

        output.emit({
            "delivered": [{"file": d.path.name, "endpoint": d.endpoint} for d in report.delivered],
            "failed": [
                {"file": f.path.name, "endpoint": f.endpoint, "status": f.returncode}
                for f in report.failed
            ],
        })
        output.set_summary(f"{len(report.delivered)} delivered, {len(report.failed)} failed")
        logger.info("delivery finished", delivered=len(report.delivered), failed=len(report.failed))

        if opts.verbose or opts.format == "json":
            output.render(opts.format, title="Spool delivery")

        return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(run(sys.argv[1:], Output(), Context()))
