"""CLI entry point for the data integrity audit.

Runs every integrity check over the database and reports findings grouped by
section.

Usage:
    python -m condo.cli.audit [--as-of YYYY-MM-DD]
    condo-audit [--as-of YYYY-MM-DD]

Exit Codes:
    0 - No errors found (warnings may exist)
    1 - Errors found, or the audit could not run

Logging:
    Findings are logged to both stdout and LOG_FILE (default logs/condo.log)
"""

import argparse
import logging
import sys
from datetime import date

from condo.services.audit_service import SECTIONS, run_audit
from condo.services.config import load_config
from condo.services.findings import AuditReport, Severity
from condo.services.logging import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    Severity.ERROR: logging.ERROR,
    Severity.WARNING: logging.WARNING,
    Severity.INFO: logging.INFO,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Condominium data integrity audit")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reference date (YYYY-MM-DD); defaults to today",
    )
    return parser


def log_report(report: AuditReport) -> None:
    """Log findings section by section."""
    findings = report.errors + report.warnings + report.infos
    for check, title in SECTIONS:
        logger.info("=== %s ===", title)
        for finding in findings:
            if finding.check == check:
                logger.log(LOG_LEVELS[finding.severity], finding.message)
        for passed in report.passed:
            if passed.check == check:
                logger.info("OK: %s", passed.message)


def print_summary(report: AuditReport, snapshot) -> None:
    counts = report.counts
    print()
    print("AUDIT SUMMARY")
    print(f"  Total units:         {len(snapshot.units)}")
    print(f"  Total creditors:     {len(snapshot.creditors)}")
    print(f"  Total transactions:  {len(snapshot.transactions)}")
    print(f"  Total allocations:   {len(snapshot.allocations)}")
    print(f"  Total owners:        {sum(len(u.owners) for u in snapshot.units)}")
    print(f"  Total extra charges: {len(snapshot.extra_charges)}")
    print()
    print(f"  Checks passed:  {counts['passed']}")
    print(f"  Warnings:       {counts['warnings']}")
    print(f"  Errors:         {counts['errors']}")
    print()
    if report.has_errors:
        print("  DATA INTEGRITY ISSUES FOUND - review errors above")
    elif report.warnings:
        print("  Minor issues found - review warnings above")
    else:
        print("  All checks passed - data looks clean!")


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the audit CLI.

    Returns:
        Exit code: 0 when no errors were found, 1 otherwise
    """
    args = build_parser().parse_args(argv)
    try:
        settings = load_config()
        setup_logging(settings.log_file, settings.log_level)
        as_of = args.as_of or date.today()
        logger.info(f"Starting data integrity audit as of {as_of.isoformat()}...")

        from condo.services import session_factory
        from condo.services.snapshot_service import SnapshotLoader

        db = session_factory(settings.database_url)()
        try:
            snapshot = SnapshotLoader(db).load()
        finally:
            db.close()

        report = run_audit(snapshot, as_of, settings.first_digital_year)
        log_report(report)
        print_summary(report, snapshot)
        return 1 if report.has_errors else 0

    except KeyboardInterrupt:
        logger.warning("Audit interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Audit failed: {e}", exc_info=True)
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
