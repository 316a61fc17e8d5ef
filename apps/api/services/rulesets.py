"""
Ruleset resolution.

A ruleset is a versioned, read-only bag of scoring and anti-cheat
constants. Batch runs resolve one ruleset up front and pass the frozen
RulesetParams through every computation, so a historical recomputation
with the same ruleset reproduces the same rows.

Resolution order:
1. an explicit ruleset id (manual backfill)
2. the season's ruleset reference
3. the most recently created ruleset
"""
from __future__ import annotations

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import RulesetMissingError
from models import Ruleset, Season

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RulesetParams:
    checkin_points: int
    activity_points_divisor: int
    max_activity_points_per_day: int
    streak_bonus_points: int
    streak_days_required: int
    top_n_contributors: int
    max_activity_per_day: int
    max_activity_spike: int
    hybrid_enabled: bool
    home_weight: float
    visitor_weight: float
    promotion_count: int
    demotion_count: int
    ruleset_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        if self.activity_points_divisor <= 0:
            raise ValueError("activity_points_divisor must be positive")
        for name in _NON_NEGATIVE:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @classmethod
    def defaults(cls) -> "RulesetParams":
        return cls(
            checkin_points=settings.RULESET_CHECKIN_POINTS,
            activity_points_divisor=settings.RULESET_ACTIVITY_POINTS_DIVISOR,
            max_activity_points_per_day=settings.RULESET_MAX_ACTIVITY_POINTS_PER_DAY,
            streak_bonus_points=settings.RULESET_STREAK_BONUS_POINTS,
            streak_days_required=settings.RULESET_STREAK_DAYS_REQUIRED,
            top_n_contributors=settings.RULESET_TOP_N_CONTRIBUTORS,
            max_activity_per_day=settings.MAX_ACTIVITY_PER_DAY,
            max_activity_spike=settings.MAX_ACTIVITY_SPIKE,
            hybrid_enabled=settings.RULESET_HYBRID_ENABLED,
            home_weight=settings.RULESET_HOME_WEIGHT,
            visitor_weight=settings.RULESET_VISITOR_WEIGHT,
            promotion_count=settings.RULESET_PROMOTION_COUNT,
            demotion_count=settings.RULESET_DEMOTION_COUNT,
        )

    @classmethod
    def from_mapping(cls, params: Dict[str, Any], ruleset_id: Optional[UUID] = None) -> "RulesetParams":
        """Stored keys override defaults; unknown keys are ignored."""
        values = asdict(cls.defaults())
        for key, raw in (params or {}).items():
            name = PARAM_ALIASES.get(key, key)
            if name in _PARAM_TYPES:
                values[name] = _PARAM_TYPES[name](raw)
        values["ruleset_id"] = ruleset_id
        return cls(**values)

    @classmethod
    def from_ruleset(cls, ruleset: Ruleset) -> "RulesetParams":
        return cls.from_mapping(ruleset.params or {}, ruleset_id=ruleset.id)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["ruleset_id"] = str(self.ruleset_id) if self.ruleset_id else None
        return data


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in ("true", "1", "yes", "on"):
            return True
        if value in ("false", "0", "no", "off", ""):
            return False
        raise ValueError(f"Not a boolean: {raw!r}")
    return bool(raw)


_PARAM_TYPES = {
    f.name: {"int": int, "bool": _to_bool, "float": float}[f.type]
    for f in fields(RulesetParams)
    if f.name != "ruleset_id"
}

_NON_NEGATIVE = tuple(
    f.name for f in fields(RulesetParams) if f.name not in ("ruleset_id", "hybrid_enabled")
)

# Accept the camelCase keys older admin tooling writes.
PARAM_ALIASES = {
    "checkinPoints": "checkin_points",
    "caloriePointsDivisor": "activity_points_divisor",
    "activityPointsDivisor": "activity_points_divisor",
    "maxCaloriePointsPerDay": "max_activity_points_per_day",
    "maxActivityPointsPerDay": "max_activity_points_per_day",
    "streakBonusPoints": "streak_bonus_points",
    "streakDaysRequired": "streak_days_required",
    "topNContributors": "top_n_contributors",
    "maxCaloriesPerDay": "max_activity_per_day",
    "maxActivityPerDay": "max_activity_per_day",
    "maxCaloriesSpike30Min": "max_activity_spike",
    "maxActivitySpike": "max_activity_spike",
    "hybridEnabled": "hybrid_enabled",
    "homeWeight": "home_weight",
    "visitorWeight": "visitor_weight",
    "promotionCount": "promotion_count",
    "demotionCount": "demotion_count",
}


def latest_ruleset(db: Session) -> Optional[Ruleset]:
    return (
        db.query(Ruleset)
        .order_by(Ruleset.created_at.desc(), Ruleset.id.desc())
        .first()
    )


def resolve_ruleset(
    db: Session,
    ruleset_id: Optional[UUID] = None,
    season: Optional[Season] = None,
) -> RulesetParams:
    """
    Resolve the ruleset for one run.

    Raises RulesetMissingError when nothing can be resolved; callers abort
    the run before touching any entity.
    """
    target_id = ruleset_id or (season.ruleset_id if season is not None else None)

    if target_id is not None:
        ruleset = db.query(Ruleset).filter(Ruleset.id == target_id).first()
        if ruleset is None:
            raise RulesetMissingError(f"Ruleset not found: {target_id}")
    else:
        ruleset = latest_ruleset(db)
        if ruleset is None:
            raise RulesetMissingError()

    try:
        return RulesetParams.from_ruleset(ruleset)
    except (TypeError, ValueError) as e:
        raise RulesetMissingError(f"Ruleset {ruleset.id} is invalid: {e}")


def thresholds_for_sync(db: Session) -> RulesetParams:
    """Anti-cheat thresholds at sync time: latest ruleset, else configured defaults."""
    ruleset = latest_ruleset(db)
    if ruleset is None:
        return RulesetParams.defaults()
    try:
        return RulesetParams.from_ruleset(ruleset)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ruleset {ruleset.id} is invalid, using default thresholds: {e}")
        return RulesetParams.defaults()


def create_ruleset(db: Session, name: str, params: Optional[Dict[str, Any]] = None) -> Ruleset:
    """Store a new ruleset version; unspecified keys take the configured defaults.

    Raises ValueError for a divisor below 1, a negative value or an
    unparseable flag.
    """
    resolved = RulesetParams.from_mapping(params or {})
    stored = resolved.to_dict()
    stored.pop("ruleset_id")

    ruleset = Ruleset(name=name, params=stored)
    db.add(ruleset)
    db.flush()
    logger.info(f"Created ruleset {ruleset.id} ({name})")
    return ruleset
