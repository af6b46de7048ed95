"""
Django Rewardman - Points & Rewards Engine.

Usage:
    from rewardman import RewardService

    result = RewardService.award_purchase(
        "CUST-001", "CAFE", Decimal("25.00"), idempotency_key="pos:8812"
    )
    balance = RewardService.balance("CUST-001", "CAFE")
    RewardService.redeem_gift_card("GC-ABCD-EFGH-JKLM", merchant_code="CAFE")

    # Validation gates
    from rewardman.gates import Gates
    Gates.non_negative_balance(balance, -30)
"""


def __getattr__(name):
    if name == "RewardService":
        from rewardman.service import RewardService

        return RewardService
    if name == "RewardmanError":
        from rewardman.exceptions import RewardmanError

        return RewardmanError
    if name == "Gates":
        from rewardman.gates import Gates

        return Gates
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["RewardService", "RewardmanError", "Gates"]
__version__ = "0.1.0"
