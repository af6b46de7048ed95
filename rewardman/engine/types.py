"""Engine value objects."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from zoneinfo import ZoneInfo


class ChallengeType(StrEnum):
    AMOUNT_MIN = "amount_min"
    TIME_BASED = "time_based"
    FREQUENCY = "frequency"
    CATEGORY = "category"


class Period(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AwardOutcome(StrEnum):
    """How a points calculation/award ended. None of these are errors."""

    AWARDED = "awarded"
    BELOW_MINIMUM_PURCHASE = "below_minimum_purchase"
    DAILY_LIMIT_CLAMPED = "daily_limit_clamped"
    DUPLICATE_AWARD = "duplicate_award"


@dataclass(frozen=True)
class ProgramConfig:
    """Merchant program settings for a single calculation call."""

    merchant_code: str
    points_per_unit: Decimal = Decimal("1")
    minimum_purchase: Decimal = Decimal("0")
    daily_points_limit: int | None = None
    gift_card_threshold: int = 100
    gift_card_value: Decimal = Decimal("5")
    gift_card_expiry_days: int | None = 30
    timezone: str = "UTC"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def issues_gift_cards(self) -> bool:
        return self.gift_card_threshold > 0


@dataclass(frozen=True)
class Purchase:
    """A POS purchase as seen by the engine."""

    amount: Decimal
    categories: frozenset[str] = frozenset()


@dataclass(frozen=True)
class CompletionRecord:
    """A past challenge completion for the customer."""

    challenge_id: int
    completed_at: datetime
    window_start: datetime | None = None


@dataclass(frozen=True)
class CustomerActivity:
    """
    Recent history the evaluator needs, supplied by the caller.

    visits includes the visit being scored. points_today is the sum of
    earned points since local midnight, before this award.
    """

    visits: tuple[datetime, ...] = ()
    completions: tuple[CompletionRecord, ...] = ()
    points_today: int = 0

    def completions_for(self, challenge_id: int) -> list[CompletionRecord]:
        return [c for c in self.completions if c.challenge_id == challenge_id]


@dataclass(frozen=True)
class ChallengeRule:
    """Snapshot of a Challenge row, with its parsed configuration."""

    id: int
    name: str
    challenge_type: ChallengeType
    config: object
    points: int
    version: int = 1
    is_active: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_repeatable: bool = True
    max_completions_per_day: int | None = None
    max_completions_total: int | None = None

    def is_live(self, as_of: datetime) -> bool:
        """Active and inside its validity window."""
        if not self.is_active:
            return False
        if self.starts_at and as_of < self.starts_at:
            return False
        if self.ends_at and as_of > self.ends_at:
            return False
        return True


@dataclass(frozen=True)
class BonusContribution:
    """Bonus points a satisfied challenge adds to an award."""

    challenge_id: int
    challenge_name: str
    challenge_version: int
    points: int
    window_start: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "challenge_id": self.challenge_id,
            "challenge_name": self.challenge_name,
            "challenge_version": self.challenge_version,
            "points": self.points,
            "window_start": self.window_start.isoformat() if self.window_start else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BonusContribution":
        window_start = data.get("window_start")
        return cls(
            challenge_id=data["challenge_id"],
            challenge_name=data["challenge_name"],
            challenge_version=data["challenge_version"],
            points=data["points"],
            window_start=datetime.fromisoformat(window_start) if window_start else None,
        )


@dataclass(frozen=True)
class PointsAward:
    """
    Result of PointsCalculator.calculate.

    total_points is what the ledger entry will carry. requested_points is
    the total before the daily cap; clamped_points = requested - total.
    base_points is always floor(amount * rate); when the cap cuts into
    the base itself, total_points is below base_points and bonuses is empty.
    """

    base_points: int
    bonuses: tuple[BonusContribution, ...] = ()
    total_points: int = 0
    requested_points: int = 0
    clamped_points: int = 0
    outcome: AwardOutcome = AwardOutcome.AWARDED

    @property
    def bonus_points(self) -> int:
        return sum(b.points for b in self.bonuses)

    @property
    def is_clamped(self) -> bool:
        return self.clamped_points > 0

    def as_dict(self) -> dict:
        return {
            "base_points": self.base_points,
            "bonuses": [b.as_dict() for b in self.bonuses],
            "total_points": self.total_points,
            "requested_points": self.requested_points,
            "clamped_points": self.clamped_points,
            "outcome": str(self.outcome),
        }

    @classmethod
    def from_dict(cls, data: dict, outcome: AwardOutcome | None = None) -> "PointsAward":
        return cls(
            base_points=data["base_points"],
            bonuses=tuple(BonusContribution.from_dict(b) for b in data.get("bonuses", [])),
            total_points=data["total_points"],
            requested_points=data.get("requested_points", data["total_points"]),
            clamped_points=data.get("clamped_points", 0),
            outcome=outcome or AwardOutcome(data.get("outcome", AwardOutcome.AWARDED)),
        )
