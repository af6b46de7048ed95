"""Rewardman models."""

from rewardman.models.merchant import Merchant
from rewardman.models.customer import Customer
from rewardman.models.account import RewardAccount
from rewardman.models.ledger import LedgerEntry, EntryKind
from rewardman.models.challenge import Challenge, ChallengeCompletion, ChallengeType
from rewardman.models.gift_card import GiftCard, GiftCardStatus
from rewardman.models.visit import Visit, VisitSource

__all__ = [
    "Merchant",
    "Customer",
    # Balance projection and its ledger
    "RewardAccount",
    "LedgerEntry",
    "EntryKind",
    # Bonus rules
    "Challenge",
    "ChallengeCompletion",
    "ChallengeType",
    # Rewards
    "GiftCard",
    "GiftCardStatus",
    # Check-ins
    "Visit",
    "VisitSource",
]
