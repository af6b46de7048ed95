"""Points calculation: base rate + challenge bonuses, capped per day."""

from datetime import datetime
from decimal import ROUND_FLOOR, Decimal

from rewardman.engine.challenges import ChallengeEvaluator
from rewardman.engine.types import (
    AwardOutcome,
    BonusContribution,
    ChallengeRule,
    CustomerActivity,
    PointsAward,
    ProgramConfig,
    Purchase,
)
from rewardman.exceptions import RewardmanError


def base_points(amount: Decimal, points_per_unit: Decimal) -> int:
    """floor(amount * rate). Fractional points are truncated, never rounded up."""
    product = Decimal(amount) * Decimal(points_per_unit)
    return int(product.to_integral_value(rounding=ROUND_FLOOR))


class PointsCalculator:
    """Turn a purchase into a PointsAward."""

    @classmethod
    def calculate(
        cls,
        purchase: Purchase,
        config: ProgramConfig,
        activity: CustomerActivity | None = None,
        challenges: list[ChallengeRule] | None = None,
        as_of: datetime | None = None,
    ) -> PointsAward:
        """
        Compute the award for a purchase.

        Below the merchant minimum the award is empty with outcome
        BELOW_MINIMUM_PURCHASE (the caller appends nothing). When the
        daily limit is hit, base points are kept first and challenge
        bonuses are cut in evaluation order; outcome DAILY_LIMIT_CLAMPED.

        Raises:
            RewardmanError: INVALID_AMOUNT for negative amounts
        """
        if purchase.amount < 0:
            raise RewardmanError("INVALID_AMOUNT", amount=str(purchase.amount))

        if purchase.amount < config.minimum_purchase:
            return PointsAward(base_points=0, outcome=AwardOutcome.BELOW_MINIMUM_PURCHASE)

        activity = activity or CustomerActivity()
        base = base_points(purchase.amount, config.points_per_unit)
        bonuses = []
        if challenges and as_of is not None:
            bonuses = ChallengeEvaluator.evaluate(
                purchase, activity, challenges, as_of, config.tzinfo
            )

        requested = base + sum(b.points for b in bonuses)
        if config.daily_points_limit is None:
            return PointsAward(
                base_points=base,
                bonuses=tuple(bonuses),
                total_points=requested,
                requested_points=requested,
            )

        headroom = max(0, config.daily_points_limit - activity.points_today)
        if requested <= headroom:
            return PointsAward(
                base_points=base,
                bonuses=tuple(bonuses),
                total_points=requested,
                requested_points=requested,
            )

        return cls._clamp(base, bonuses, headroom, requested)

    @staticmethod
    def _clamp(
        base: int,
        bonuses: list[BonusContribution],
        headroom: int,
        requested: int,
    ) -> PointsAward:
        kept_base = min(base, headroom)
        remaining = headroom - kept_base
        kept_bonuses = []
        for bonus in bonuses:
            if remaining <= 0:
                break
            granted = min(bonus.points, remaining)
            remaining -= granted
            kept_bonuses.append(
                BonusContribution(
                    challenge_id=bonus.challenge_id,
                    challenge_name=bonus.challenge_name,
                    challenge_version=bonus.challenge_version,
                    points=granted,
                    window_start=bonus.window_start,
                )
            )

        total = kept_base + sum(b.points for b in kept_bonuses)
        return PointsAward(
            base_points=base,
            bonuses=tuple(kept_bonuses),
            total_points=total,
            requested_points=requested,
            clamped_points=requested - total,
            outcome=AwardOutcome.DAILY_LIMIT_CLAMPED,
        )
