from __future__ import annotations

import argparse


def main() -> int:
    parser = argparse.ArgumentParser(description="Delete league audit events older than N days (with dry-run).")
    parser.add_argument("--days", type=int, default=None, help="Delete events older than this many days (default: AUDIT_RETENTION_DAYS)")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be deleted, without deleting")
    parser.add_argument("--sample", type=int, default=5, help="Show up to N sample rows (default: 5)")
    args = parser.parse_args()

    if args.days is not None and args.days < 1:
        raise SystemExit("--days must be >= 1")

    # NOTE: run inside the API container/runtime where the app modules
    # (`core`, `models`, `services`) are available on PYTHONPATH.
    from core.database import get_db_sync
    from models import LeagueAuditEvent
    from services.retention import purge_audit_events

    db = get_db_sync()
    try:
        summary = purge_audit_events(db, older_than_days=args.days, dry_run=True)

        print("League audit retention cleanup")
        print(f"- cutoff: {summary['cutoff']}")
        print(f"- matches: {summary['matched']}")

        sample_n = max(0, int(args.sample or 0))
        if sample_n and summary["matched"]:
            rows = (
                db.query(LeagueAuditEvent)
                .order_by(LeagueAuditEvent.created_at.asc())
                .limit(sample_n)
                .all()
            )
            for ev in rows:
                print(f"  - {ev.created_at.isoformat()} {ev.event_type} season={ev.season_id} club={ev.club_id} {ev.from_value}->{ev.to_value}")

        if args.dry_run:
            print("Dry run: no deletions performed.")
            return 0

        summary = purge_audit_events(db, older_than_days=args.days)
        print(f"Deleted {summary['deleted']} league audit event(s).")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
