"""
Challenge configuration and evaluation.

Each ChallengeType has its own frozen config dataclass and one handler in
ChallengeEvaluator._HANDLERS. Adding a type means adding both; the test
suite checks every ChallengeType has a handler.

Stored config shapes (Challenge.config JSON):
    amount_min: {"min_amount": "10.00"}
    time_based: {"start_time": "09:00", "end_time": "17:00"}
    frequency:  {"visits_required": 3, "period": "weekly"}
    category:   {"categories": ["coffee", "bakery"]}
"""

from dataclasses import dataclass
from datetime import datetime, time, tzinfo
from decimal import Decimal, InvalidOperation

from rewardman.engine.periods import in_window, local_midnight, window_start
from rewardman.engine.types import (
    BonusContribution,
    ChallengeRule,
    ChallengeType,
    CustomerActivity,
    Period,
    Purchase,
)
from rewardman.exceptions import RewardmanError


@dataclass(frozen=True)
class AmountMinConfig:
    min_amount: Decimal

    def as_dict(self) -> dict:
        return {"min_amount": str(self.min_amount)}


@dataclass(frozen=True)
class TimeBasedConfig:
    start_time: time
    end_time: time

    @property
    def wraps_midnight(self) -> bool:
        return self.start_time > self.end_time

    def contains(self, moment: time) -> bool:
        if self.wraps_midnight:
            return moment >= self.start_time or moment <= self.end_time
        return self.start_time <= moment <= self.end_time

    def as_dict(self) -> dict:
        return {
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
        }


@dataclass(frozen=True)
class FrequencyConfig:
    visits_required: int
    period: Period

    def as_dict(self) -> dict:
        return {"visits_required": self.visits_required, "period": str(self.period)}


@dataclass(frozen=True)
class CategoryConfig:
    categories: frozenset[str]

    def as_dict(self) -> dict:
        return {"categories": sorted(self.categories)}


ChallengeConfig = AmountMinConfig | TimeBasedConfig | FrequencyConfig | CategoryConfig


def normalize_categories(values) -> frozenset[str]:
    """Lowercase, stripped, non-empty category tags."""
    return frozenset(v.strip().lower() for v in values or () if v and v.strip())


def _invalid(challenge_type, reason: str) -> RewardmanError:
    return RewardmanError(
        "INVALID_CHALLENGE_CONFIG",
        message=f"Invalid {challenge_type} configuration: {reason}",
        challenge_type=str(challenge_type),
    )


def _parse_time(challenge_type, value) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        return time.fromisoformat(str(value)).replace(second=0, microsecond=0)
    except ValueError:
        raise _invalid(challenge_type, f"bad time {value!r}")


def parse_challenge_config(challenge_type: str, data: dict | None) -> ChallengeConfig:
    """
    Parse stored JSON config into its typed dataclass.

    Raises:
        RewardmanError: INVALID_CHALLENGE_CONFIG for unknown types or bad fields
    """
    data = data or {}
    try:
        kind = ChallengeType(challenge_type)
    except ValueError:
        raise _invalid(challenge_type, "unknown challenge type")

    if kind == ChallengeType.AMOUNT_MIN:
        try:
            min_amount = Decimal(str(data["min_amount"]))
        except (KeyError, InvalidOperation):
            raise _invalid(kind, "min_amount is required and must be a number")
        if min_amount < 0:
            raise _invalid(kind, "min_amount must not be negative")
        return AmountMinConfig(min_amount=min_amount)

    if kind == ChallengeType.TIME_BASED:
        if "start_time" not in data or "end_time" not in data:
            raise _invalid(kind, "start_time and end_time are required")
        return TimeBasedConfig(
            start_time=_parse_time(kind, data["start_time"]),
            end_time=_parse_time(kind, data["end_time"]),
        )

    if kind == ChallengeType.FREQUENCY:
        try:
            visits_required = int(data["visits_required"])
            period = Period(data.get("period", Period.WEEKLY))
        except (KeyError, TypeError, ValueError):
            raise _invalid(kind, "visits_required and a daily/weekly/monthly period are required")
        if visits_required < 1:
            raise _invalid(kind, "visits_required must be at least 1")
        return FrequencyConfig(visits_required=visits_required, period=period)

    if kind == ChallengeType.CATEGORY:
        categories = normalize_categories(data.get("categories"))
        if not categories:
            raise _invalid(kind, "at least one category is required")
        return CategoryConfig(categories=categories)

    raise _invalid(kind, "no parser for challenge type")


class ChallengeEvaluator:
    """
    Decide which challenges a purchase satisfies.

    Pure: every input (purchase, activity, challenges, as_of, tz) is
    supplied by the caller. Satisfied challenges all contribute; there is
    no "best challenge" selection.
    """

    @classmethod
    def evaluate(
        cls,
        purchase: Purchase,
        activity: CustomerActivity,
        challenges: list[ChallengeRule],
        as_of: datetime,
        tz: tzinfo,
    ) -> list[BonusContribution]:
        """
        Return bonus contributions, ordered by challenge points then id.

        Paused challenges, challenges outside their validity window and
        challenges that already reached a completion limit are skipped.
        """
        contributions = []
        for rule in sorted(challenges, key=lambda r: (r.points, r.id)):
            if rule.points <= 0 or not rule.is_live(as_of):
                continue
            if not cls._within_limits(rule, activity, as_of, tz):
                continue

            handler = cls._HANDLERS[ChallengeType(rule.challenge_type)]
            satisfied, window = handler(rule.config, purchase, activity, as_of, tz)
            if not satisfied:
                continue
            if window is not None and any(
                c.window_start == window for c in activity.completions_for(rule.id)
            ):
                continue

            contributions.append(
                BonusContribution(
                    challenge_id=rule.id,
                    challenge_name=rule.name,
                    challenge_version=rule.version,
                    points=rule.points,
                    window_start=window,
                )
            )
        return contributions

    @staticmethod
    def _within_limits(
        rule: ChallengeRule,
        activity: CustomerActivity,
        as_of: datetime,
        tz: tzinfo,
    ) -> bool:
        completions = activity.completions_for(rule.id)
        if not completions:
            return True
        if not rule.is_repeatable:
            return False
        if rule.max_completions_total is not None and len(completions) >= rule.max_completions_total:
            return False
        if rule.max_completions_per_day is not None:
            today = local_midnight(as_of, tz)
            done_today = sum(1 for c in completions if in_window(c.completed_at, today, as_of))
            if done_today >= rule.max_completions_per_day:
                return False
        return True

    # Handlers return (satisfied, window_start or None)

    @staticmethod
    def _amount_min(config: AmountMinConfig, purchase, activity, as_of, tz):
        return purchase.amount >= config.min_amount, None

    @staticmethod
    def _time_based(config: TimeBasedConfig, purchase, activity, as_of, tz):
        moment = as_of.astimezone(tz).time().replace(second=0, microsecond=0)
        return config.contains(moment), None

    @staticmethod
    def _frequency(config: FrequencyConfig, purchase, activity, as_of, tz):
        start = window_start(as_of, config.period, tz)
        visits = sum(1 for v in activity.visits if in_window(v, start, as_of))
        return visits >= config.visits_required, start

    @staticmethod
    def _category(config: CategoryConfig, purchase, activity, as_of, tz):
        tags = normalize_categories(purchase.categories)
        return bool(tags & config.categories), None

    _HANDLERS = {
        ChallengeType.AMOUNT_MIN: _amount_min,
        ChallengeType.TIME_BASED: _time_based,
        ChallengeType.FREQUENCY: _frequency,
        ChallengeType.CATEGORY: _category,
    }
