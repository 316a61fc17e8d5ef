"""
Pytest configuration and fixtures

Every test gets its own in-memory SQLite database built from the models,
so service code is free to commit and nothing leaks between tests.
Redis-backed caching and rate limiting are switched off.
"""
import os
import sys
from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

# Settings are read at import time; configure before importing app modules.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-club-league-0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

# Add the parent directory to the path so we can import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.database import Base  # noqa: E402
from models import (  # noqa: E402
    Checkin,
    Club,
    EntityStatus,
    HealthDailySummary,
    LeagueTier,
    Member,
    MemberScoreDaily,
    Ruleset,
    Season,
    SeasonClub,
    SeasonStatus,
)

# 2026-03-02 is a Monday
MONDAY = date(2026, 3, 2)

SCENARIO_PARAMS = {
    "checkin_points": 50,
    "activity_points_divisor": 10,
    "max_activity_points_per_day": 150,
    "streak_bonus_points": 20,
    "streak_days_required": 3,
    "max_activity_per_day": 2500,
    "max_activity_spike": 1000,
    "top_n_contributors": 10,
    "hybrid_enabled": True,
    "home_weight": 0.7,
    "visitor_weight": 0.3,
    "promotion_count": 2,
    "demotion_count": 2,
}


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Fresh database per test."""
    TestingSession = sessionmaker(
        bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSession()
    yield session
    session.close()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_club(db_session):
    def _make(name=None, status=EntityStatus.ACTIVE):
        club = Club(name=name or f"Club {uuid4().hex[:6]}", status=status.value)
        db_session.add(club)
        db_session.commit()
        return club
    return _make


@pytest.fixture
def make_member(db_session):
    def _make(club=None, consent=True, status=EntityStatus.ACTIVE, name=None):
        member = Member(
            display_name=name or f"Member {uuid4().hex[:6]}",
            club_id=club.id if club is not None else None,
            activity_consent=consent,
            status=status.value,
        )
        db_session.add(member)
        db_session.commit()
        return member
    return _make


@pytest.fixture
def make_ruleset(db_session):
    def _make(name="Scenario ruleset", created_at=None, **overrides):
        params = dict(SCENARIO_PARAMS)
        params.update(overrides)
        ruleset = Ruleset(
            name=name,
            params=params,
            created_at=created_at or datetime.now(timezone.utc),
        )
        db_session.add(ruleset)
        db_session.commit()
        return ruleset
    return _make


@pytest.fixture
def ruleset(make_ruleset):
    return make_ruleset()


@pytest.fixture
def make_season(db_session):
    def _make(
        clubs_by_tier=None,
        start_date=date(2026, 1, 5),
        end_date=date(2026, 6, 28),
        status=SeasonStatus.ACTIVE,
        ruleset=None,
    ):
        season = Season(
            name=f"Season {uuid4().hex[:6]}",
            start_date=start_date,
            end_date=end_date,
            status=status.value,
            ruleset_id=ruleset.id if ruleset is not None else None,
        )
        db_session.add(season)
        db_session.flush()
        for tier, clubs in (clubs_by_tier or {}).items():
            for club in clubs:
                db_session.add(SeasonClub(
                    season_id=season.id,
                    club_id=club.id,
                    league_tier=LeagueTier(tier).value,
                ))
        db_session.commit()
        return season
    return _make


@pytest.fixture
def add_checkin(db_session):
    def _add(member, club, day, hour=9):
        checkin = Checkin(
            member_id=member.id,
            club_id=club.id,
            checkin_date=day,
            checked_in_at=datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc),
        )
        db_session.add(checkin)
        db_session.commit()
        return checkin
    return _add


@pytest.fixture
def add_activity(db_session):
    def _add(member, day, calories, flagged=False, reason=None):
        summary = HealthDailySummary(
            member_id=member.id,
            date=day,
            active_calories=calories,
            anomaly_flagged=flagged,
            anomaly_reason=reason,
        )
        db_session.add(summary)
        db_session.commit()
        return summary
    return _add


@pytest.fixture
def add_score(db_session):
    """Insert a MemberScoreDaily row directly (aggregation tests)."""
    def _add(member, day, total):
        score = MemberScoreDaily(
            member_id=member.id,
            date=day,
            points_checkin=0,
            points_activity=total,
            points_bonus=0,
            total_points=total,
            streak_days=0,
        )
        db_session.add(score)
        db_session.commit()
        return score
    return _add


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers():
    from core.security import create_access_token

    def _headers(member=None, role="member", sub=None):
        claims = {"sub": sub or (str(member.id) if member is not None else str(uuid4())), "role": role}
        if member is not None:
            claims["member_id"] = str(member.id)
        return {"Authorization": f"Bearer {create_access_token(claims)}"}
    return _headers


@pytest.fixture
def client(db_session):
    from fastapi.testclient import TestClient
    from core.database import get_db
    from main import app

    def _override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
