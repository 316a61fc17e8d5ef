"""
Tests for check-in recording.

Organization:
1. Accepted scans and the home-club update
2. One check-in per member per day
3. Rejected scans write nothing
4. History queries
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from core.exceptions import AlreadyCheckedInError, MemberNotFoundError, TokenExpiredError
from models import Checkin
from services.checkin_recorder import check_in, get_checkin_for_day, get_checkin_history
from services.checkin_tokens import issue_token

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def _scan(db, member, club, now):
    issued = issue_token(db, club.id, now=now)
    return check_in(db, member.id, club.id, issued.token, issued.issued_at, now=now)


# =============================================================================
# ACCEPTED SCANS
# =============================================================================

class TestCheckIn:
    """A valid scan records exactly one row for the UTC day."""

    def test_records_checkin(self, db_session, make_club, make_member):
        club = make_club()
        member = make_member(club=club)

        checkin = _scan(db_session, member, club, T0)

        assert checkin.member_id == member.id
        assert checkin.club_id == club.id
        assert checkin.checkin_date == date(2026, 3, 2)
        assert checkin.method == "QR"
        assert db_session.query(Checkin).count() == 1

    def test_home_club_reassigned_on_other_club(self, db_session, make_club, make_member):
        home = make_club()
        other = make_club()
        member = make_member(club=home)

        _scan(db_session, member, other, T0)

        assert member.club_id == other.id

    def test_member_without_home_club_gets_one(self, db_session, make_club, make_member):
        club = make_club()
        member = make_member()

        _scan(db_session, member, club, T0)

        assert member.club_id == club.id

    def test_home_club_unchanged_on_home_scan(self, db_session, make_club, make_member):
        club = make_club()
        member = make_member(club=club)
        _scan(db_session, member, club, T0)
        assert member.club_id == club.id

    def test_unknown_member(self, db_session, make_club):
        from uuid import uuid4
        club = make_club()
        issued = issue_token(db_session, club.id, now=T0)
        with pytest.raises(MemberNotFoundError):
            check_in(db_session, uuid4(), club.id, issued.token, issued.issued_at, now=T0)


# =============================================================================
# UNIQUENESS
# =============================================================================

class TestOnePerDay:
    """One check-in per member per calendar day, whatever the club."""

    def test_second_scan_same_club_rejected(self, db_session, make_club, make_member):
        club = make_club()
        member = make_member(club=club)
        _scan(db_session, member, club, T0)

        with pytest.raises(AlreadyCheckedInError) as exc:
            _scan(db_session, member, club, T0 + timedelta(hours=2))
        assert exc.value.error_code == "ALREADY_CHECKED_IN"

    def test_second_scan_other_club_rejected(self, db_session, make_club, make_member):
        club_a = make_club()
        club_b = make_club()
        member = make_member(club=club_a)
        _scan(db_session, member, club_a, T0)

        with pytest.raises(AlreadyCheckedInError):
            _scan(db_session, member, club_b, T0 + timedelta(hours=1))

        assert db_session.query(Checkin).count() == 1
        assert member.club_id == club_a.id

    def test_next_day_allowed(self, db_session, make_club, make_member):
        club = make_club()
        member = make_member(club=club)
        _scan(db_session, member, club, T0)
        _scan(db_session, member, club, T0 + timedelta(days=1))
        assert db_session.query(Checkin).count() == 2

    def test_day_boundary_is_utc(self, db_session, make_club, make_member):
        club = make_club()
        member = make_member(club=club)
        late = datetime(2026, 3, 2, 23, 59, 0, tzinfo=timezone.utc)
        early = datetime(2026, 3, 3, 0, 1, 0, tzinfo=timezone.utc)
        assert _scan(db_session, member, club, late).checkin_date == date(2026, 3, 2)
        assert _scan(db_session, member, club, early).checkin_date == date(2026, 3, 3)


# =============================================================================
# REJECTED SCANS
# =============================================================================

class TestRejectedScan:
    """Token failures leave no row and no home-club change."""

    def test_expired_token_writes_nothing(self, db_session, make_club, make_member):
        home = make_club()
        other = make_club()
        member = make_member(club=home)
        issued = issue_token(db_session, other.id, now=T0)

        with pytest.raises(TokenExpiredError):
            check_in(
                db_session, member.id, other.id, issued.token, issued.issued_at,
                now=T0 + timedelta(minutes=6),
            )

        assert db_session.query(Checkin).count() == 0
        assert member.club_id == home.id


# =============================================================================
# HISTORY
# =============================================================================

class TestHistory:
    def test_history_newest_first_within_window(self, db_session, make_club, make_member, add_checkin):
        club = make_club()
        member = make_member(club=club)
        today = date(2026, 3, 10)
        add_checkin(member, club, today - timedelta(days=40))
        add_checkin(member, club, today - timedelta(days=3))
        add_checkin(member, club, today)

        history = get_checkin_history(db_session, member.id, days=30, today=today)

        assert [c.checkin_date for c in history] == [today, today - timedelta(days=3)]

    def test_checkin_for_day(self, db_session, make_club, make_member, add_checkin):
        club = make_club()
        member = make_member(club=club)
        add_checkin(member, club, date(2026, 3, 2))
        assert get_checkin_for_day(db_session, member.id, date(2026, 3, 2)) is not None
        assert get_checkin_for_day(db_session, member.id, date(2026, 3, 3)) is None
