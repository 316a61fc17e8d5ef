"""
Tests for the season lifecycle state machine.
"""
from datetime import date
from types import SimpleNamespace

import pytest

from core.exceptions import SeasonNotFoundError
from models import LeagueAuditEvent, Season, SeasonStatus
from services.season_lifecycle import can_transition, cancel_season, next_status, run_season_lifecycle

START = date(2026, 3, 2)
END = date(2026, 3, 29)


def _season(status):
    return SimpleNamespace(status=status.value, start_date=START, end_date=END)


# =============================================================================
# PURE TRANSITION FUNCTION
# =============================================================================

class TestNextStatus:
    """Start date is inclusive, end date is the last active day."""

    def test_draft_before_start(self):
        assert next_status(date(2026, 3, 1), _season(SeasonStatus.DRAFT)) == SeasonStatus.DRAFT

    def test_draft_on_start(self):
        assert next_status(START, _season(SeasonStatus.DRAFT)) == SeasonStatus.ACTIVE

    def test_active_on_end_date(self):
        assert next_status(END, _season(SeasonStatus.ACTIVE)) == SeasonStatus.ACTIVE

    def test_active_after_end(self):
        assert next_status(date(2026, 3, 30), _season(SeasonStatus.ACTIVE)) == SeasonStatus.COMPLETED

    def test_missed_draft_goes_straight_to_completed(self):
        assert next_status(date(2026, 4, 15), _season(SeasonStatus.DRAFT)) == SeasonStatus.COMPLETED

    def test_cancelled_is_terminal(self):
        assert next_status(date(2026, 3, 10), _season(SeasonStatus.CANCELLED)) == SeasonStatus.CANCELLED

    def test_allowed_transitions(self):
        assert can_transition(SeasonStatus.DRAFT, SeasonStatus.ACTIVE)
        assert can_transition(SeasonStatus.COMPLETED, SeasonStatus.CANCELLED)
        assert not can_transition(SeasonStatus.COMPLETED, SeasonStatus.ACTIVE)
        assert not can_transition(SeasonStatus.CANCELLED, SeasonStatus.DRAFT)


# =============================================================================
# SCHEDULED RUN
# =============================================================================

class TestRunSeasonLifecycle:
    def test_activates_and_completes(self, db_session, make_season):
        draft = make_season(start_date=START, end_date=END, status=SeasonStatus.DRAFT)
        active = make_season(start_date=date(2026, 1, 5), end_date=date(2026, 3, 1), status=SeasonStatus.ACTIVE)
        future = make_season(start_date=date(2026, 4, 6), end_date=date(2026, 5, 3), status=SeasonStatus.DRAFT)

        summary = run_season_lifecycle(db_session, START)

        assert summary["activated"] == 1
        assert summary["completed"] == 1
        assert db_session.get(Season, draft.id).status == "ACTIVE"
        assert db_session.get(Season, active.id).status == "COMPLETED"
        assert db_session.get(Season, future.id).status == "DRAFT"
        assert db_session.query(LeagueAuditEvent).count() == 2

    def test_repeated_tick_changes_nothing(self, db_session, make_season):
        make_season(start_date=START, end_date=END, status=SeasonStatus.DRAFT)
        run_season_lifecycle(db_session, START)

        again = run_season_lifecycle(db_session, START)

        assert again["activated"] == 0
        assert again["completed"] == 0
        assert db_session.query(LeagueAuditEvent).count() == 1

    def test_cancelled_untouched(self, db_session, make_season):
        season = make_season(start_date=START, end_date=END, status=SeasonStatus.CANCELLED)
        run_season_lifecycle(db_session, date(2026, 4, 1))
        assert db_session.get(Season, season.id).status == "CANCELLED"


# =============================================================================
# CANCEL
# =============================================================================

class TestCancelSeason:
    def test_cancel_active(self, db_session, make_season):
        season = make_season(status=SeasonStatus.ACTIVE)
        cancelled = cancel_season(db_session, season.id)
        db_session.commit()
        assert cancelled.status == "CANCELLED"

    def test_cancel_twice_is_noop(self, db_session, make_season):
        season = make_season(status=SeasonStatus.ACTIVE)
        cancel_season(db_session, season.id)
        db_session.commit()
        cancel_season(db_session, season.id)
        db_session.commit()
        assert db_session.query(LeagueAuditEvent).count() == 1

    def test_unknown_season(self, db_session):
        from uuid import uuid4
        with pytest.raises(SeasonNotFoundError):
            cancel_season(db_session, uuid4())
