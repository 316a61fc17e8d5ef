"""
Tests for anomaly detection and daily activity sync.

Organization:
1. Pure rules (ceiling, spike)
2. Sticky flag merge
3. Sync path (consent, upsert, flag persistence)
4. Nightly sweep
"""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from core.exceptions import ConsentRequiredError
from models import HealthDailySummary
from services.activity_sync import set_activity_consent, sync_daily_activity
from services.anomaly_detection import (
    REASON_MAX_DAILY,
    REASON_SPIKE,
    AnomalyVerdict,
    evaluate,
    evaluate_member_day,
    merge_sticky,
    run_anomaly_sweep,
)

DAY = date(2026, 3, 2)
NOW = datetime(2026, 3, 2, 20, 0, tzinfo=timezone.utc)


# =============================================================================
# RULES
# =============================================================================

class TestEvaluate:
    """Ceiling and spike thresholds, 2500 / 1000 by default."""

    def test_normal_day_not_flagged(self):
        verdict = evaluate(800, 600, 2500, 1000)
        assert verdict.flagged is False
        assert verdict.reason is None

    def test_ceiling_is_exclusive(self):
        assert evaluate(2500, None, 2500, 1000).flagged is False
        verdict = evaluate(2501, None, 2500, 1000)
        assert verdict.flagged is True
        assert verdict.reason == REASON_MAX_DAILY

    def test_spike_from_previous_day(self):
        verdict = evaluate(1600, 500, 2500, 1000)
        assert verdict.flagged is True
        assert verdict.reason == REASON_SPIKE

    def test_spike_boundary(self):
        assert evaluate(1500, 500, 2500, 1000).flagged is False

    def test_no_previous_day_no_spike(self):
        assert evaluate(2000, None, 2500, 1000).flagged is False

    def test_both_reasons(self):
        verdict = evaluate(3000, 100, 2500, 1000)
        assert verdict.reason == f"{REASON_MAX_DAILY}; {REASON_SPIKE}"


# =============================================================================
# STICKY MERGE
# =============================================================================

class TestMergeSticky:
    """A stored flag is never cleared by a later clean verdict."""

    def test_clean_over_clean(self):
        assert merge_sticky(False, None, AnomalyVerdict(False)) == (False, None)

    def test_new_flag_applied(self):
        assert merge_sticky(False, None, AnomalyVerdict(True, REASON_SPIKE)) == (True, REASON_SPIKE)

    def test_clean_does_not_clear(self):
        assert merge_sticky(True, REASON_SPIKE, AnomalyVerdict(False)) == (True, REASON_SPIKE)

    def test_reasons_accumulate_once(self):
        flagged, reason = merge_sticky(True, REASON_SPIKE, AnomalyVerdict(True, f"{REASON_MAX_DAILY}; {REASON_SPIKE}"))
        assert flagged is True
        assert reason == f"{REASON_SPIKE}; {REASON_MAX_DAILY}"


# =============================================================================
# SYNC PATH
# =============================================================================

class TestSyncDailyActivity:
    """One summary row per member-day; verdict OR-ed into the stored flag."""

    def test_requires_consent(self, db_session, make_member):
        member = make_member(consent=False)
        with pytest.raises(ConsentRequiredError) as exc:
            sync_daily_activity(db_session, member, DAY, 500, now=NOW)
        assert exc.value.error_code == "CONSENT_REQUIRED"
        assert db_session.query(HealthDailySummary).count() == 0

    def test_stores_summary(self, db_session, make_member):
        member = make_member()
        result = sync_daily_activity(db_session, member, DAY, 500, steps=8000, workout_minutes=45, now=NOW)

        assert result.anomaly_detected is False
        assert result.summary.active_calories == 500
        assert result.summary.steps == 8000
        assert result.summary.anomaly_flagged is False

    def test_resync_overwrites_values(self, db_session, make_member):
        member = make_member()
        sync_daily_activity(db_session, member, DAY, 500, now=NOW)
        result = sync_daily_activity(db_session, member, DAY, 700, now=NOW + timedelta(hours=1))

        assert result.summary.active_calories == 700
        assert db_session.query(HealthDailySummary).count() == 1

    def test_flag_survives_clean_resync(self, db_session, make_member):
        member = make_member()
        first = sync_daily_activity(db_session, member, DAY, 3000, now=NOW)
        assert first.anomaly_detected is True

        second = sync_daily_activity(db_session, member, DAY, 600, now=NOW + timedelta(hours=1))

        assert second.anomaly_detected is False
        assert second.summary.active_calories == 600
        assert second.summary.anomaly_flagged is True
        assert second.summary.anomaly_reason == REASON_MAX_DAILY

    def test_spike_against_stored_previous_day(self, db_session, make_member, add_activity):
        member = make_member()
        add_activity(member, DAY - timedelta(days=1), 300)

        result = sync_daily_activity(db_session, member, DAY, 1400, now=NOW)

        assert result.anomaly_detected is True
        assert result.summary.anomaly_reason == REASON_SPIKE

    def test_ruleset_thresholds_used(self, db_session, make_member, make_ruleset):
        make_ruleset(max_activity_per_day=1000)
        member = make_member()
        result = sync_daily_activity(db_session, member, DAY, 1200, now=NOW)
        assert result.anomaly_detected is True

    def test_consent_toggle(self, db_session, make_member):
        member = make_member(consent=False)
        set_activity_consent(db_session, member, True, now=NOW)
        assert member.activity_consent is True
        assert member.activity_consent_at == NOW

        set_activity_consent(db_session, member, False, now=NOW)
        assert member.activity_consent is False
        assert member.activity_consent_at is None


# =============================================================================
# SWEEP
# =============================================================================

class TestAnomalySweep:
    """Re-checks yesterday's unflagged rows; only ever sets flags."""

    def test_flags_backfilled_spike(self, db_session, make_member, add_activity):
        member = make_member()
        # Day row synced first, previous day backfilled afterwards
        row = add_activity(member, DAY, 1500)
        add_activity(member, DAY - timedelta(days=1), 100)

        summary = run_anomaly_sweep(db_session, DAY + timedelta(days=1), lookback_days=1)

        assert summary["checked"] == 1
        assert summary["flagged"] == 1
        db_session.refresh(row)
        assert row.anomaly_flagged is True
        assert row.anomaly_reason == REASON_SPIKE

    def test_already_flagged_rows_skipped(self, db_session, make_member, add_activity):
        member = make_member()
        add_activity(member, DAY, 3000, flagged=True, reason=REASON_MAX_DAILY)
        summary = run_anomaly_sweep(db_session, DAY + timedelta(days=1), lookback_days=1)
        assert summary["checked"] == 0

    def test_outside_window_ignored(self, db_session, make_member, add_activity):
        member = make_member()
        add_activity(member, DAY - timedelta(days=5), 3000)
        summary = run_anomaly_sweep(db_session, DAY + timedelta(days=1), lookback_days=1)
        assert summary["checked"] == 0
        assert summary["start_date"] == DAY.isoformat()
        assert summary["end_date"] == DAY.isoformat()

    def test_zero_lookback_disables(self, db_session):
        assert run_anomaly_sweep(db_session, DAY, lookback_days=0)["status"] == "disabled"

    def test_row_failure_isolated(self, db_session, make_member, add_activity):
        member_a = make_member()
        member_b = make_member()
        add_activity(member_a, DAY, 3000)
        add_activity(member_b, DAY, 3000)

        calls = {"n": 0}

        def flaky(db, member_id, day, value, params=None):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("boom")
            return evaluate_member_day(db, member_id, day, value, params)

        with patch("services.anomaly_detection.evaluate_member_day", side_effect=flaky):
            summary = run_anomaly_sweep(db_session, DAY + timedelta(days=1), lookback_days=1)

        assert summary["failed"] == 1
        assert summary["flagged"] == 1
