"""
Tests for the standings & league engine.

Organization:
1. Per-tier ranking and flags (pure)
2. Snapshot persistence
3. Tier transitions (once per period)
4. Standings queries
"""
from datetime import date, timedelta
from uuid import uuid4

from models import (
    ClubPeriodScore,
    LeagueAuditEvent,
    LeagueStanding,
    LeagueTier,
    PeriodType,
    SeasonClub,
    SeasonStatus,
)
from services.league_standings import (
    apply_tier_transitions,
    get_club_standing,
    get_standings,
    is_period_frozen,
    rank_tier,
    snapshot_standings,
)
from services.rulesets import RulesetParams

WEEK_START = date(2026, 3, 2)
WEEK_END = date(2026, 3, 8)


def _tier_of(db, season, club):
    return (
        db.query(SeasonClub.league_tier)
        .filter(SeasonClub.season_id == season.id, SeasonClub.club_id == club.id)
        .scalar()
    )


# =============================================================================
# RANKING (pure)
# =============================================================================

class TestRankTier:
    """Points descending, ties by club id, flags bounded by tier."""

    def test_silver_promotes_top_and_demotes_bottom(self):
        clubs = [(uuid4(), p) for p in (500, 400, 300, 200, 100)]
        entries = rank_tier(LeagueTier.SILVER, clubs, 2, 2)

        assert [e.rank for e in entries] == [1, 2, 3, 4, 5]
        assert [e.promotion for e in entries] == [True, True, False, False, False]
        assert [e.demotion for e in entries] == [False, False, False, True, True]

    def test_gold_never_promotes(self):
        clubs = [(uuid4(), p) for p in (300, 200, 100)]
        entries = rank_tier(LeagueTier.GOLD, clubs, 2, 1)
        assert not any(e.promotion for e in entries)
        assert [e.demotion for e in entries] == [False, False, True]

    def test_bronze_never_demotes(self):
        clubs = [(uuid4(), p) for p in (300, 200, 100)]
        entries = rank_tier(LeagueTier.BRONZE, clubs, 1, 2)
        assert not any(e.demotion for e in entries)
        assert [e.promotion for e in entries] == [True, False, False]

    def test_overlap_promotion_wins(self):
        clubs = [(uuid4(), p) for p in (300, 200, 100)]
        entries = rank_tier(LeagueTier.SILVER, clubs, 2, 2)
        assert [e.promotion for e in entries] == [True, True, False]
        assert [e.demotion for e in entries] == [False, False, True]
        assert not any(e.promotion and e.demotion for e in entries)

    def test_ties_broken_by_club_id(self):
        a, b = sorted([uuid4(), uuid4()], key=str)
        entries = rank_tier(LeagueTier.SILVER, [(b, 100), (a, 100)], 1, 1)
        assert entries[0].club_id == a
        assert entries[0].promotion is True
        assert entries[1].demotion is True

    def test_empty_tier(self):
        assert rank_tier(LeagueTier.SILVER, [], 2, 2) == []


# =============================================================================
# LEAGUE FIXTURE
# =============================================================================

def _build_league(db, make_ruleset, make_club, make_member, make_season, add_score, status=SeasonStatus.ACTIVE):
    """Three tiers of three clubs; each club's only member scores 300/200/100."""
    ruleset = make_ruleset(promotion_count=1, demotion_count=1)
    clubs = {tier: [make_club(name=f"{tier}-{i}") for i in range(3)] for tier in ("GOLD", "SILVER", "BRONZE")}
    season = make_season(clubs, status=status, ruleset=ruleset)
    for tier_clubs in clubs.values():
        for club, points in zip(tier_clubs, (300, 200, 100)):
            add_score(make_member(club=club), WEEK_START, points)
    return season, clubs, RulesetParams.from_ruleset(ruleset)


# =============================================================================
# SNAPSHOT
# =============================================================================

class TestSnapshot:
    def test_snapshot_writes_standings_and_scores(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)

        entries = snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        db_session.commit()

        assert len(entries) == 9
        assert db_session.query(LeagueStanding).count() == 9
        assert db_session.query(ClubPeriodScore).count() == 9

        top_silver = (
            db_session.query(LeagueStanding)
            .filter(LeagueStanding.club_id == clubs["SILVER"][0].id)
            .one()
        )
        assert top_silver.rank == 1
        assert top_silver.points == 210
        assert top_silver.promotion is True
        assert top_silver.demotion is False

    def test_resnapshot_is_upsert(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, _, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        db_session.commit()
        assert db_session.query(LeagueStanding).count() == 9

    def test_overall_rank_across_tiers(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        db_session.commit()

        ranks = sorted(r[0] for r in db_session.query(ClubPeriodScore.rank).all())
        assert ranks == list(range(1, 10))


# =============================================================================
# TRANSITIONS
# =============================================================================

class TestTierTransitions:
    """Flags move clubs once per period; reruns change nothing."""

    def test_moves_and_audit(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)

        result = apply_tier_transitions(db_session, season, WEEK_START)
        db_session.commit()

        assert result.applied is True
        assert result.promoted == 2
        assert result.demoted == 2
        assert _tier_of(db_session, season, clubs["GOLD"][0]) == "GOLD"
        assert _tier_of(db_session, season, clubs["GOLD"][2]) == "SILVER"
        assert _tier_of(db_session, season, clubs["SILVER"][0]) == "GOLD"
        assert _tier_of(db_session, season, clubs["SILVER"][2]) == "BRONZE"
        assert _tier_of(db_session, season, clubs["BRONZE"][0]) == "SILVER"
        assert _tier_of(db_session, season, clubs["BRONZE"][2]) == "BRONZE"
        assert db_session.query(LeagueAuditEvent).count() == 4
        assert season.last_transition_period == WEEK_START

    def test_second_run_is_noop(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        apply_tier_transitions(db_session, season, WEEK_START)
        db_session.commit()

        again = apply_tier_transitions(db_session, season, WEEK_START)
        db_session.commit()

        assert again.applied is False
        assert again.skipped_reason == "already_applied"
        assert _tier_of(db_session, season, clubs["SILVER"][0]) == "GOLD"
        assert db_session.query(LeagueAuditEvent).count() == 4

    def test_completed_season_keeps_tiers(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(
            db_session, make_ruleset, make_club, make_member, make_season, add_score,
            status=SeasonStatus.COMPLETED,
        )
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)

        result = apply_tier_transitions(db_session, season, WEEK_START)

        assert result.applied is False
        assert result.skipped_reason == "season_not_active"
        assert _tier_of(db_session, season, clubs["SILVER"][0]) == "SILVER"

    def test_transitioned_week_is_frozen(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        apply_tier_transitions(db_session, season, WEEK_START)
        db_session.commit()

        assert is_period_frozen(db_session, season, PeriodType.WEEK, WEEK_START) is True
        assert is_period_frozen(db_session, season, PeriodType.WEEK, WEEK_START + timedelta(days=7)) is False
        assert is_period_frozen(db_session, season, PeriodType.MONTH, date(2026, 3, 1)) is False

        # Late scores do not rewrite the closed week
        add_score(make_member(club=clubs["BRONZE"][2]), WEEK_START, 5000)
        entries = snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        db_session.commit()

        bottom = next(e for e in entries if e.club_id == clubs["BRONZE"][2].id)
        assert bottom.points == 70
        assert bottom.tier == LeagueTier.BRONZE


# =============================================================================
# QUERIES
# =============================================================================

class TestQueries:
    def test_standings_gold_first_then_rank(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        db_session.commit()

        result = get_standings(db_session, season.id)

        assert result["period_start"] == WEEK_START.isoformat()
        assert result["period_end"] == WEEK_END.isoformat()
        assert [r["tier"] for r in result["standings"]] == ["GOLD"] * 3 + ["SILVER"] * 3 + ["BRONZE"] * 3
        assert [r["rank"] for r in result["standings"][:3]] == [1, 2, 3]
        assert result["standings"][0]["club_name"] == "GOLD-0"
        assert result["standings"][0]["breakdown"]["mode"] == "hybrid"

    def test_standings_tier_filter(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, _, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        db_session.commit()

        result = get_standings(db_session, season.id, tier=LeagueTier.SILVER)
        assert {r["tier"] for r in result["standings"]} == {"SILVER"}

    def test_standings_empty_before_first_snapshot(self, db_session, make_season):
        result = get_standings(db_session, make_season().id)
        assert result["period_start"] is None
        assert result["standings"] == []

    def test_club_standing(self, db_session, make_ruleset, make_club, make_member, make_season, add_score):
        season, clubs, params = _build_league(db_session, make_ruleset, make_club, make_member, make_season, add_score)
        snapshot_standings(db_session, season, PeriodType.WEEK, WEEK_START, WEEK_END, params)
        apply_tier_transitions(db_session, season, WEEK_START)
        db_session.commit()

        standing = get_club_standing(db_session, season.id, clubs["BRONZE"][0].id)

        assert standing["tier"] == "BRONZE"
        assert standing["current_tier"] == "SILVER"
        assert standing["promotion"] is True

    def test_club_not_in_season(self, db_session, make_club, make_season):
        assert get_club_standing(db_session, make_season().id, make_club().id) is None
