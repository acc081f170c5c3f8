# app/cli/lifecycle.py
"""
CLI commands for the retention lifecycle.

Usage:
    python -m app.cli.lifecycle status
    python -m app.cli.lifecycle scan --dry-run
    python -m app.cli.lifecycle scan --confirm
    python -m app.cli.lifecycle deadline-reminders
    python -m app.cli.lifecycle show <case_id>
"""

import argparse
import sys
import uuid

from dotenv import load_dotenv

load_dotenv()


def get_db_session():
    """Get a database session."""
    from app.database import SessionLocal

    return SessionLocal()


def cmd_status(args):
    """Show lifecycle counts and what the next scan would do."""
    from app.services.lifecycle import preview_transitions
    from app.services.metrics_cache import compute_lifecycle_metrics
    from app.utils.dates import utcnow

    db = get_db_session()
    try:
        now = utcnow()
        metrics = compute_lifecycle_metrics(db, now)
        preview = preview_transitions(db, now)

        print("\n=== Lifecycle Status ===\n")

        print(f"Cases: {metrics['cases']['total']} "
              f"({metrics['cases']['long_term']} long-term, {metrics['cases']['short_stay']} short-stay)")
        print("\nRetention:")
        for state, count in metrics["retention"].items():
            print(f"  {state}: {count}")

        print("\nNext Scan:")
        for level in sorted(preview.reminders_due):
            print(f"  Reminders at level {level}: {preview.reminders_due[level]}")
        print(f"  Cases to expire: {preview.cases_to_expire}")
        print(f"  Cases to purge: {preview.cases_to_purge}")

        print()
    finally:
        db.close()


def cmd_scan(args):
    """Run the transition scan."""
    from app.services.email_service import get_email_service
    from app.services.lifecycle import run_transition_scan
    from app.storage import get_storage_provider

    if not args.dry_run and not args.confirm:
        print("Error: Scan requires --confirm flag for non-dry-run operations")
        print("Use --dry-run to preview what would happen")
        sys.exit(1)

    db = get_db_session()
    try:
        print(f"\n{'DRY RUN - ' if args.dry_run else ''}Running transition scan...\n")

        result = run_transition_scan(
            db,
            mailer=get_email_service(),
            storage=None if args.dry_run else get_storage_provider(),
            batch_size=args.batch_size,
            dry_run=args.dry_run,
        )

        if args.dry_run:
            print(f"Would send reminders: {result.reminders_due}")
            for level, count in sorted(result.reminders_due_by_level.items()):
                print(f"  level {level}: {count}")
            print(f"Would expire: {result.expiries_due}")
            print(f"Would purge: {result.purges_due}")
        else:
            print(f"Did send reminders: {result.reminders_sent}")
            for level, count in sorted(result.reminders_by_level.items()):
                print(f"  level {level}: {count}")
            print(f"Did expire: {result.cases_expired}")
            print(f"Did purge: {result.cases_purged}")
            print(f"Reminders not delivered: {result.reminders_failed}")
            print(f"Storage objects deleted: {result.objects_deleted} (failed: {result.objects_failed})")

        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  - {error}")

        if not result.success:
            sys.exit(1)
    finally:
        db.close()


def cmd_deadline_reminders(args):
    """Send lease-deadline reminders due today."""
    from app.services.email_service import get_email_service
    from app.services.lifecycle import run_deadline_reminders

    db = get_db_session()
    try:
        result = run_deadline_reminders(db, mailer=get_email_service())

        print(f"\nEmails sent: {result.emails_sent}")
        print(f"Skipped (unpaid): {result.skipped_unpaid}")
        print(f"Skipped (already sent today): {result.skipped_already_sent}")
        print(f"Failed: {result.failed}")

        if not result.success:
            sys.exit(1)
    finally:
        db.close()


def cmd_show(args):
    """Print one case's lifecycle fields and entitlements."""
    from app.models import RentalCase
    from app.services.entitlements import get_case_entitlements
    from app.services.lifecycle.state_machine import days_remaining
    from app.utils.dates import utcnow

    try:
        case_id = uuid.UUID(args.case_id)
    except ValueError:
        print(f"Error: '{args.case_id}' is not a valid case id")
        sys.exit(1)

    db = get_db_session()
    try:
        case = db.get(RentalCase, case_id)
        if case is None:
            print(f"Error: Case {case_id} not found")
            sys.exit(1)

        now = utcnow()
        entitlements = get_case_entitlements(db, case_id, now=now)

        print(f"\n=== Case {case.id} ({case.label}) ===\n")
        print(f"Stay type: {case.stay_type}")
        print(f"Status: {case.deletion_status}")
        print(f"Retention until: {case.retention_until or '-'} ({days_remaining(case, now)} days)")
        print(f"Grace until: {case.grace_until or '-'}")
        print(f"Reminder level: {case.retention_reminder_level}")
        print(f"Storage years: {case.storage_years_purchased}")

        print("\nEntitlements:")
        for key, value in entitlements.to_dict().items():
            print(f"  {key}: {value}")
        print()
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(
        description="RentVault Lifecycle CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check current status
  python -m app.cli.lifecycle status

  # Preview what the daily scan would do
  python -m app.cli.lifecycle scan --dry-run

  # Run the scan now
  python -m app.cli.lifecycle scan --confirm

  # Inspect one case
  python -m app.cli.lifecycle show 6f1c...
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show lifecycle status")
    status_parser.set_defaults(func=cmd_status)

    scan_parser = subparsers.add_parser("scan", help="Run reminders, expiry and purge")
    scan_parser.add_argument("--batch-size", type=int, default=500, help="Max cases per phase (default: 500)")
    scan_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't write")
    scan_parser.add_argument("--confirm", action="store_true", help="Confirm a real scan")
    scan_parser.set_defaults(func=cmd_scan)

    deadline_parser = subparsers.add_parser("deadline-reminders", help="Send lease-deadline reminders")
    deadline_parser.set_defaults(func=cmd_deadline_reminders)

    show_parser = subparsers.add_parser("show", help="Show one case")
    show_parser.add_argument("case_id", help="Case UUID")
    show_parser.set_defaults(func=cmd_show)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
