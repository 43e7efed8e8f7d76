"""Entry point for running a plan of dependent shell steps."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from stagerun.config import load_settings
from stagerun.console import RunConsole, setup_logging
from stagerun.errors import PlanError, StuckRunError
from stagerun.plan import load_plan_file
from stagerun.report import audit_entries, results_table
from stagerun.tasks import TaskQueue


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a plan of dependent shell steps.")
    parser.add_argument("--plan", type=Path, required=True, help="Path to a JSON plan.")
    parser.add_argument("--workers", type=positive_int, default=None, help="Parallel workers (default: settings).")
    parser.add_argument("--verbose", action="store_true", help="Print per-task progress.")
    parser.add_argument("--audit", type=Path, default=None, help="Where to write the JSON audit log.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level)
    console = RunConsole(verbose=args.verbose or settings.verbose)

    try:
        plan = load_plan_file(args.plan)
    except PlanError as exc:
        console.warn(str(exc))
        return 2

    queue = TaskQueue(console=console, pool=settings.worker_pool())
    queue.enqueue_all(plan.tasks)
    try:
        report = queue.run_all(max_workers=args.workers)
    except StuckRunError as exc:
        console.warn(str(exc))
        report = exc.report

    console.console.print(results_table(report))

    if args.audit is not None:
        args.audit.parent.mkdir(parents=True, exist_ok=True)
        args.audit.write_text(json.dumps(audit_entries(report), indent=2), encoding="utf-8")
        console.info(f"Audit log saved to {args.audit}")

    return 0 if report.successful else 1


if __name__ == "__main__":
    sys.exit(main())
