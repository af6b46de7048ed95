"""
Rewardman public API.

CORE (essential):
    RewardService.calculate_points(...)    - Preview an award
    RewardService.award_purchase(...)      - Score a POS purchase
    RewardService.append_ledger_entry(...) - Raw ledger append
    RewardService.redeem_gift_card(...)    - Redeem a gift card
    RewardService.list_gift_cards(...)     - Customer's gift cards
    RewardService.balance(...)             - Current points balance
    RewardService.check_in(...)            - Identify by phone + record visit

CONVENIENCE (helpers):
    RewardService.validate_gift_card(...)  - Non-raising POS check
    RewardService.history(...)             - Ledger entries
    RewardService.gift_card_progress(...)  - Points to the next gift card
"""

from datetime import datetime
from decimal import Decimal

from rewardman.engine.types import PointsAward
from rewardman.models import GiftCard, LedgerEntry, VisitSource
from rewardman.services.checkins import CheckinResult, CheckinService
from rewardman.services.gift_cards import (
    GiftCardIssuer,
    GiftCardLifecycle,
    GiftCardProgress,
    GiftCardValidation,
)
from rewardman.services.ledger import LedgerAppend, RewardLedger
from rewardman.services.points import PointsService, PurchaseResult


class RewardService:
    """
    Rewardman public API.

    Uses @classmethod for extensibility. Every method delegates to one
    service in rewardman.services; errors surface as RewardmanError.
    """

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def calculate_points(
        cls,
        merchant_code: str,
        amount,
        customer_code: str | None = None,
        categories=(),
        as_of: datetime | None = None,
    ) -> PointsAward:
        """
        Preview the points a purchase would earn. Nothing is written.

        Args:
            merchant_code: Merchant code
            amount: Purchase amount
            customer_code: Customer (optional; enables challenge history)
            categories: Product category tags
            as_of: Purchase time (defaults to now)

        Returns:
            PointsAward
        """
        return PointsService.calculate_points(
            merchant_code, amount, customer_code=customer_code, categories=categories, as_of=as_of
        )

    @classmethod
    def award_purchase(
        cls,
        customer_code: str,
        merchant_code: str,
        amount,
        *,
        idempotency_key: str = "",
        categories=(),
        branch: str = "",
        reference: str = "",
        created_by: str = "",
        as_of: datetime | None = None,
    ) -> PurchaseResult:
        """
        Score a purchase, append it to the ledger and issue gift cards.

        Returns:
            PurchaseResult (outcome AWARDED, BELOW_MINIMUM_PURCHASE,
            DAILY_LIMIT_CLAMPED or DUPLICATE_AWARD)
        """
        return PointsService.award_purchase(
            customer_code,
            merchant_code,
            amount,
            idempotency_key=idempotency_key,
            categories=categories,
            branch=branch,
            reference=reference,
            created_by=created_by,
            as_of=as_of,
        )

    @classmethod
    def append_ledger_entry(
        cls,
        customer_code: str,
        merchant_code: str,
        kind: str,
        points: int,
        description: str,
        *,
        idempotency_key: str = "",
        reference: str = "",
        purchase_amount: Decimal | None = None,
        metadata: dict | None = None,
        created_by: str = "",
    ) -> LedgerAppend:
        """Append one signed entry (earn | adjustment | redemption)."""
        return RewardLedger.append(
            customer_code,
            merchant_code,
            kind,
            points,
            description,
            idempotency_key=idempotency_key,
            reference=reference,
            purchase_amount=purchase_amount,
            metadata=metadata,
            created_by=created_by,
        )

    @classmethod
    def redeem_gift_card(
        cls,
        gift_card: str | int,
        merchant_code: str | None = None,
        redeemed_by: str = "",
        notes: str = "",
    ) -> GiftCard:
        """Redeem a gift card by code or id."""
        return GiftCardLifecycle.redeem(
            gift_card, merchant_code=merchant_code, redeemed_by=redeemed_by, notes=notes
        )

    @classmethod
    def list_gift_cards(
        cls,
        customer_code: str,
        status: str | None = None,
        merchant_code: str | None = None,
    ) -> list[GiftCard]:
        """Customer's gift cards, newest first (overdue cards show as expired)."""
        return GiftCardLifecycle.list_gift_cards(
            customer_code, status=status, merchant_code=merchant_code
        )

    @classmethod
    def balance(cls, customer_code: str, merchant_code: str) -> int:
        """Current points balance. Returns 0 if not enrolled."""
        return RewardLedger.balance(customer_code, merchant_code)

    @classmethod
    def check_in(
        cls,
        merchant_code: str,
        phone: str,
        first_name: str = "",
        last_name: str = "",
        branch: str = "",
        source: str = VisitSource.QR,
    ) -> CheckinResult:
        """Identify (or create) a customer by phone and record a visit."""
        return CheckinService.check_in(
            merchant_code,
            phone,
            first_name=first_name,
            last_name=last_name,
            branch=branch,
            source=source,
        )

    # ======================================================================
    # CONVENIENCE
    # ======================================================================

    @classmethod
    def validate_gift_card(cls, code: str, merchant_code: str | None = None) -> GiftCardValidation:
        return GiftCardLifecycle.validate(code, merchant_code=merchant_code)

    @classmethod
    def history(
        cls,
        customer_code: str,
        merchant_code: str,
        kind: str | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntry]:
        return RewardLedger.entries(customer_code, merchant_code, kind=kind, limit=limit)

    @classmethod
    def gift_card_progress(cls, customer_code: str, merchant_code: str) -> GiftCardProgress:
        """
        Points still needed for the next gift card.

        Raises:
            RewardmanError: CUSTOMER_NOT_FOUND / MERCHANT_NOT_FOUND
        """
        return GiftCardIssuer.progress(RewardLedger.enroll(customer_code, merchant_code))
