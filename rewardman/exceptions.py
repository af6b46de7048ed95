"""Rewardman exceptions."""

from typing import Any


class BaseError(Exception):
    """
    Structured exception with a machine-readable code.

    Subclasses provide ``_default_messages`` so callers only need the code.
    Extra keyword arguments are kept in ``data`` for the caller/UI.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "data": self.data}


class RewardmanError(BaseError):
    """
    Structured exception for points and rewards operations.

    Usage:
        try:
            RewardService.redeem_gift_card("GC-ABCD-EFGH-JKLM")
        except RewardmanError as e:
            if e.code == "GIFT_CARD_EXPIRED":
                tell_operator(e.message)
    """

    _default_messages = {
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "MERCHANT_NOT_FOUND": "Merchant not found",
        "INVALID_PHONE": "Invalid phone number",
        "INVALID_POINTS": "Invalid points value for entry kind",
        "INVALID_AMOUNT": "Purchase amount must not be negative",
        "INVALID_DESCRIPTION": "Entry description is too long",
        "INSUFFICIENT_BALANCE": "Insufficient points balance",
        "IDEMPOTENCY_CONFLICT": "Idempotency key already used for a different change",
        "CONCURRENT_UPDATE": "Balance changed concurrently, retry the request",
        "GIFT_CARD_NOT_FOUND": "Gift card not found",
        "GIFT_CARD_ALREADY_REDEEMED": "Gift card already redeemed",
        "GIFT_CARD_ALREADY_EXPIRED": "Gift card already expired",
        "GIFT_CARD_EXPIRED": "Gift card has expired",
        "INVALID_GIFT_CARD_STATUS": "Gift card status does not allow this transition",
        "INVALID_CHALLENGE_CONFIG": "Invalid challenge configuration",
        "CHALLENGE_NOT_FOUND": "Challenge not found",
        "CHALLENGE_HAS_COMPLETIONS": "Challenge has awarded bonuses and cannot be deleted",
    }
