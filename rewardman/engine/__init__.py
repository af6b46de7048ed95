"""Rewardman engine - pure points, challenge and threshold rules.

Nothing in this package touches the database. Callers (services) load
the merchant's ProgramConfig, the customer's recent activity and the
active challenges, and pass them in explicitly.
"""

from rewardman.engine.challenges import ChallengeEvaluator, parse_challenge_config
from rewardman.engine.points import PointsCalculator
from rewardman.engine.thresholds import cards_to_issue, missing_sequences
from rewardman.engine.types import (
    AwardOutcome,
    BonusContribution,
    ChallengeRule,
    CompletionRecord,
    CustomerActivity,
    PointsAward,
    ProgramConfig,
    Purchase,
)

__all__ = [
    "ChallengeEvaluator",
    "parse_challenge_config",
    "PointsCalculator",
    "cards_to_issue",
    "missing_sequences",
    "AwardOutcome",
    "BonusContribution",
    "ChallengeRule",
    "CompletionRecord",
    "CustomerActivity",
    "PointsAward",
    "ProgramConfig",
    "Purchase",
]
