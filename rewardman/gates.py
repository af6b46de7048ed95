"""
Rewardman Gates - Validation rules.

G1: EntrySign - Points sign must match the ledger entry kind
G2: NonNegativeBalance - An append can never take the balance below zero
G3: GiftCardTransition - Gift cards only move available -> redeemed | expired
G4: ChallengeConfig - Challenge config must parse for its type

Gates raise RewardmanError with the engine's error codes, so callers see
one exception type. Each gate has a check_* variant returning a bool.
"""

from dataclasses import dataclass

from rewardman.exceptions import RewardmanError


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


class Gates:
    """Rewardman validation gates."""

    # =========================================================================
    # G1: Entry Sign
    # =========================================================================

    @classmethod
    def entry_sign(cls, kind: str, points: int) -> GateResult:
        """
        G1: earn > 0, redemption < 0, adjustment != 0.

        Raises:
            RewardmanError: INVALID_POINTS
        """
        from rewardman.models import EntryKind

        valid = {
            EntryKind.EARN: points > 0,
            EntryKind.REDEMPTION: points < 0,
            EntryKind.ADJUSTMENT: points != 0,
        }.get(kind)

        if valid is None:
            raise RewardmanError(
                "INVALID_POINTS",
                message=f"Unknown ledger entry kind: {kind}",
                gate="G1_EntrySign",
                kind=kind,
            )
        if not valid:
            raise RewardmanError(
                "INVALID_POINTS",
                message=f"{points} points is not valid for a {kind} entry",
                gate="G1_EntrySign",
                kind=kind,
                points=points,
            )

        return GateResult(True, "G1_EntrySign")

    @classmethod
    def check_entry_sign(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.entry_sign(*args, **kwargs)
            return True
        except RewardmanError:
            return False

    # =========================================================================
    # G2: Non-negative Balance
    # =========================================================================

    @classmethod
    def non_negative_balance(cls, balance: int, points: int) -> GateResult:
        """
        G2: balance + points must stay >= 0.

        This is the one ledger write that is rejected instead of clamped.

        Raises:
            RewardmanError: INSUFFICIENT_BALANCE
        """
        if balance + points < 0:
            raise RewardmanError(
                "INSUFFICIENT_BALANCE",
                gate="G2_NonNegativeBalance",
                available=balance,
                requested=-points,
            )

        return GateResult(True, "G2_NonNegativeBalance")

    @classmethod
    def check_non_negative_balance(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.non_negative_balance(*args, **kwargs)
            return True
        except RewardmanError:
            return False

    # =========================================================================
    # G3: Gift Card Transition
    # =========================================================================

    ALLOWED_GIFT_CARD_TRANSITIONS = {
        ("available", "redeemed"),
        ("available", "expired"),
    }

    @classmethod
    def gift_card_transition(cls, current: str, target: str) -> GateResult:
        """
        G3: Only available -> redeemed and available -> expired are legal.

        Raises:
            RewardmanError: GIFT_CARD_ALREADY_REDEEMED / GIFT_CARD_ALREADY_EXPIRED /
                INVALID_GIFT_CARD_STATUS
        """
        if (current, target) in cls.ALLOWED_GIFT_CARD_TRANSITIONS:
            return GateResult(True, "G3_GiftCardTransition")

        code = {
            "redeemed": "GIFT_CARD_ALREADY_REDEEMED",
            "expired": "GIFT_CARD_ALREADY_EXPIRED",
        }.get(current, "INVALID_GIFT_CARD_STATUS")
        raise RewardmanError(
            code,
            gate="G3_GiftCardTransition",
            current=current,
            target=target,
        )

    @classmethod
    def check_gift_card_transition(cls, current: str, target: str) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.gift_card_transition(current, target)
            return True
        except RewardmanError:
            return False

    # =========================================================================
    # G4: Challenge Config
    # =========================================================================

    @classmethod
    def challenge_config(cls, challenge_type: str, config: dict | None) -> GateResult:
        """
        G4: Config must parse for the challenge type.

        Raises:
            RewardmanError: INVALID_CHALLENGE_CONFIG
        """
        from rewardman.engine.challenges import parse_challenge_config

        parse_challenge_config(challenge_type, config)
        return GateResult(True, "G4_ChallengeConfig")

    @classmethod
    def check_challenge_config(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.challenge_config(*args, **kwargs)
            return True
        except RewardmanError:
            return False
