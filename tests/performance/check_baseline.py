"""
Compare a load-test JSON report against a baseline report.

The locustfile already performs this check at the end of every run;
this script repeats it offline, e.g. to compare the report of a CI run
with a baseline kept elsewhere, or to re-evaluate an old report after
the thresholds changed.

Checks, with limits from :file:`thresholds.yml`:

- **Error rate (%)** — ``num_failures / num_requests × 100`` of the
  aggregated row
- **P95 regression (%)** — growth of each endpoint's P95 latency
  relative to the baseline

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0`` — all thresholds passed
- ``1`` — at least one threshold was breached
- ``2`` — the script itself failed (missing file, bad JSON/YAML, etc.)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

try:
    from tests.performance.reporting import compare, format_findings, load_report, load_thresholds
except ModuleNotFoundError:  # pragma: no cover - fallback for script entrypoint
    sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
    from tests.performance.reporting import compare, format_findings, load_report, load_thresholds

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the baseline checker."""
    parser = argparse.ArgumentParser(
        description="Check a load test JSON report against a baseline report."
    )
    parser.add_argument(
        "--report",
        required=True,
        type=Path,
        help="Path to the JSON report of the run",
    )
    parser.add_argument(
        "--baseline",
        type=Path,
        default=None,
        help="Path to the baseline JSON report (error rate only when omitted)",
    )
    parser.add_argument(
        "--thresholds",
        type=Path,
        default=Path(__file__).resolve().parent / "thresholds.yml",
        help="Path to thresholds YAML file",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: load files, compare, and print results.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        thresholds = load_thresholds(args.thresholds)
        report = load_report(args.report)
        baseline = load_report(args.baseline) if args.baseline is not None else None
        findings = compare(report, baseline, thresholds)
    except Exception as exc:  # pragma: no cover - defensive CLI guard
        print(f"Baseline check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    print(format_findings(findings))
    return EXIT_PASS if all(finding.passed for finding in findings) else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
