from __future__ import annotations

import argparse
import json
from datetime import date, timedelta
from uuid import UUID


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill member daily scores (and club week totals) for a date range.")
    parser.add_argument("--date", required=True, type=date.fromisoformat, help="Last day to score (YYYY-MM-DD)")
    parser.add_argument("--days", type=int, default=1, help="Number of days ending at --date (default: 1)")
    parser.add_argument("--ruleset-id", type=UUID, default=None, help="Score with this ruleset instead of the latest")
    args = parser.parse_args()

    if args.days < 1:
        raise SystemExit("--days must be >= 1")

    # NOTE: run inside the API container/runtime where the app modules
    # (`core`, `models`, `services`) are available on PYTHONPATH.
    from core.database import get_db_sync
    from core.exceptions import RulesetMissingError
    from services.score_runs import run_daily_scoring

    db = get_db_sync()
    try:
        for offset in range(args.days - 1, -1, -1):
            day = args.date - timedelta(days=offset)
            try:
                summary = run_daily_scoring(db, day, ruleset_id=args.ruleset_id)
            except RulesetMissingError as e:
                print(f"Aborted: {e.detail}")
                return 1
            print(json.dumps(summary))
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
