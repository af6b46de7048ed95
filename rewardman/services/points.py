"""Points service - scoring a POS purchase end to end.

award_purchase runs in one transaction.atomic() block:

    visit -> activity -> PointsCalculator -> earn entry (+ gift cards)
    -> challenge completions

and schedules the notification and points_awarded signal for after commit.
The earn entry is appended against the account version read before the
activity was loaded, so an award computed from stale activity raises
CONCURRENT_UPDATE instead of slipping past the daily cap.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.utils import timezone

from rewardman.engine.periods import window_start
from rewardman.engine.points import PointsCalculator
from rewardman.engine.types import (
    AwardOutcome,
    CompletionRecord,
    CustomerActivity,
    Period,
    PointsAward,
    ProgramConfig,
    Purchase,
)
from rewardman.exceptions import RewardmanError
from rewardman.models import (
    ChallengeCompletion,
    EntryKind,
    GiftCard,
    LedgerEntry,
    Merchant,
    RewardAccount,
    Visit,
    VisitSource,
)
from rewardman.services import notifications
from rewardman.services.challenges import ChallengeService
from rewardman.services.checkins import CheckinService
from rewardman.services.ledger import LedgerAppend, RewardLedger
from rewardman.signals import points_awarded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseResult:
    """
    Outcome of PointsService.award_purchase.

    entry is None when nothing was appended (below minimum, zero points).
    On a duplicate the award is rebuilt from the original entry.
    """

    award: PointsAward
    account: RewardAccount
    entry: LedgerEntry | None = None
    visit: Visit | None = None
    gift_cards: tuple[GiftCard, ...] = ()
    duplicate: bool = False

    @property
    def outcome(self) -> AwardOutcome:
        return self.award.outcome

    @property
    def points(self) -> int:
        return self.award.total_points

    @property
    def balance(self) -> int:
        return self.account.points_balance


class _DuplicatePurchase(Exception):
    """Rolls back the visit recorded for a purchase that was already awarded."""

    def __init__(self, append: LedgerAppend):
        self.append = append


def _to_amount(amount) -> Decimal:
    try:
        return Decimal(str(amount))
    except InvalidOperation:
        raise RewardmanError("INVALID_AMOUNT", amount=str(amount))


class PointsService:
    """
    Purchase scoring and manual point movements.

    Uses @classmethod for extensibility (consistent with other services).
    """

    # ======================================================================
    # Purchases
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
        Preview the award for a purchase. Nothing is written.

        The purchase being previewed counts as a visit, as it would at
        award time.
        """
        as_of = as_of or timezone.now()
        try:
            merchant = Merchant.objects.get(code=merchant_code, is_active=True)
        except Merchant.DoesNotExist:
            raise RewardmanError("MERCHANT_NOT_FOUND", merchant_code=merchant_code)
        config = merchant.program_config()

        account = RewardLedger.get_account(customer_code, merchant_code) if customer_code else None
        if account is not None:
            activity = cls.build_activity(account, config, as_of, pending_visit=True)
        else:
            activity = CustomerActivity(visits=(as_of,))

        return PointsCalculator.calculate(
            Purchase(amount=_to_amount(amount), categories=frozenset(categories)),
            config,
            activity,
            ChallengeService.active_for(merchant_code, as_of),
            as_of,
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
        Score a purchase and append it to the ledger.

        Args:
            customer_code: Customer code
            merchant_code: Merchant code
            amount: Purchase amount (Decimal or numeric string)
            idempotency_key: Token from the POS request (pos:8812); a retry
                returns the original result with outcome DUPLICATE_AWARD
            categories: Product category tags on the ticket
            branch: Branch where the purchase happened
            reference: External reference stored on the entry
            created_by: Operator
            as_of: Purchase time (defaults to now)

        Returns:
            PurchaseResult

        Raises:
            RewardmanError: INVALID_AMOUNT, CUSTOMER_NOT_FOUND,
                MERCHANT_NOT_FOUND, IDEMPOTENCY_CONFLICT, CONCURRENT_UPDATE
        """
        amount = _to_amount(amount)
        if amount < 0:
            raise RewardmanError("INVALID_AMOUNT", amount=str(amount))
        as_of = as_of or timezone.now()

        account = RewardLedger.enroll(customer_code, merchant_code)
        config = account.merchant.program_config()

        if idempotency_key:
            existing = RewardLedger.find_by_key(account.merchant_id, idempotency_key)
            if existing is not None:
                return cls._duplicate(existing, account, amount)

        try:
            with transaction.atomic():
                result = cls._award(
                    account,
                    config,
                    Purchase(amount=amount, categories=frozenset(categories)),
                    idempotency_key=idempotency_key,
                    branch=branch,
                    reference=reference,
                    created_by=created_by,
                    as_of=as_of,
                )
        except _DuplicatePurchase as dup:
            return cls._duplicate(dup.append.entry, account, amount)

        if result.entry is None:
            logger.info(
                "Purchase %s for %s@%s earned no points (%s)",
                amount,
                customer_code,
                merchant_code,
                result.outcome,
            )
            return result

        if result.award.is_clamped:
            logger.warning(
                "Daily limit clamped %d point(s) for %s@%s",
                result.award.clamped_points,
                customer_code,
                merchant_code,
            )
        logger.info(
            "Awarded %d point(s) (%d base + %d bonus) to %s@%s for %s",
            result.points,
            result.award.base_points,
            result.award.bonus_points,
            customer_code,
            merchant_code,
            amount,
        )
        return result

    @classmethod
    def _award(
        cls,
        account: RewardAccount,
        config: ProgramConfig,
        purchase: Purchase,
        *,
        idempotency_key: str,
        branch: str,
        reference: str,
        created_by: str,
        as_of: datetime,
    ) -> PurchaseResult:
        # Everything below is computed from this version of the account
        expected_version = RewardAccount.objects.values_list("version", flat=True).get(pk=account.pk)
        visit = CheckinService.record_visit(
            account,
            branch=branch,
            source=VisitSource.POS,
            purchase_amount=purchase.amount,
            as_of=as_of,
        )
        activity = cls.build_activity(account, config, as_of)
        challenges = ChallengeService.active_for(config.merchant_code, as_of)
        award = PointsCalculator.calculate(purchase, config, activity, challenges, as_of)

        if award.total_points <= 0:
            return PurchaseResult(award=award, account=account, visit=visit)

        append = RewardLedger.append_to_account(
            account,
            EntryKind.EARN,
            award.total_points,
            f"Purchase {purchase.amount}",
            idempotency_key=idempotency_key,
            reference=reference,
            purchase_amount=purchase.amount,
            metadata={"award": award.as_dict(), "branch": branch},
            created_by=created_by,
            as_of=as_of,
            config=config,
            expected_version=expected_version,
        )
        if append.duplicate:
            raise _DuplicatePurchase(append)

        for bonus in award.bonuses:
            if bonus.points <= 0:
                continue
            try:
                with transaction.atomic():
                    ChallengeCompletion.objects.create(
                        challenge_id=bonus.challenge_id,
                        account=append.account,
                        ledger_entry=append.entry,
                        points=bonus.points,
                        challenge_name=bonus.challenge_name,
                        challenge_version=bonus.challenge_version,
                        window_start=bonus.window_start,
                        completed_at=as_of,
                    )
            except IntegrityError:
                # Another request completed this challenge window first
                logger.warning(
                    "Challenge %s already completed for %s in window %s",
                    bonus.challenge_id,
                    append.account.customer.code,
                    bonus.window_start,
                )
                raise RewardmanError(
                    "CONCURRENT_UPDATE",
                    customer_code=append.account.customer.code,
                    challenge_id=bonus.challenge_id,
                )

        notifications.points_awarded(append.account.customer.code, award)
        notifications.send_signal_on_commit(
            points_awarded, sender=LedgerEntry, entry=append.entry, award=award
        )
        return PurchaseResult(
            award=award,
            account=append.account,
            entry=append.entry,
            visit=visit,
            gift_cards=append.gift_cards,
        )

    @classmethod
    def _duplicate(cls, entry: LedgerEntry, account: RewardAccount, amount: Decimal) -> PurchaseResult:
        stored = entry.metadata.get("award")
        if (
            entry.account_id != account.pk
            or entry.kind != EntryKind.EARN
            or stored is None
            or (entry.purchase_amount is not None and entry.purchase_amount != amount)
        ):
            raise RewardmanError(
                "IDEMPOTENCY_CONFLICT",
                idempotency_key=entry.idempotency_key,
                original_points=entry.points,
            )
        logger.info("Duplicate purchase ignored (key %s)", entry.idempotency_key)
        account.refresh_from_db()
        return PurchaseResult(
            award=PointsAward.from_dict(stored, outcome=AwardOutcome.DUPLICATE_AWARD),
            account=account,
            entry=entry,
            duplicate=True,
        )

    @classmethod
    def build_activity(
        cls,
        account: RewardAccount,
        config: ProgramConfig,
        as_of: datetime,
        pending_visit: bool = False,
    ) -> CustomerActivity:
        """
        Load what the evaluator needs about the customer.

        Visits cover the longest frequency window (week or month,
        whichever starts first). pending_visit adds as_of as a visit
        that is not stored yet.
        """
        tz = config.tzinfo
        lookback = min(
            window_start(as_of, Period.WEEKLY, tz),
            window_start(as_of, Period.MONTHLY, tz),
        )
        visits = CheckinService.visits_since(account, lookback, as_of)
        if pending_visit:
            visits.append(as_of)

        completions = tuple(
            CompletionRecord(challenge_id=challenge_id, completed_at=completed_at, window_start=start)
            for challenge_id, completed_at, start in ChallengeCompletion.objects.filter(
                account=account
            ).values_list("challenge_id", "completed_at", "window_start")
        )
        return CustomerActivity(
            visits=tuple(visits),
            completions=completions,
            points_today=RewardLedger.points_today(account, as_of, tz),
        )

    # ======================================================================
    # Manual movements
    # ======================================================================

    @classmethod
    def adjust(
        cls,
        customer_code: str,
        merchant_code: str,
        points: int,
        reason: str,
        *,
        idempotency_key: str = "",
        created_by: str = "",
    ) -> LedgerAppend:
        """
        Manual correction (positive or negative).

        Raises:
            RewardmanError: INVALID_POINTS, INSUFFICIENT_BALANCE
        """
        return RewardLedger.append(
            customer_code,
            merchant_code,
            EntryKind.ADJUSTMENT,
            points,
            reason,
            idempotency_key=idempotency_key,
            created_by=created_by,
        )

    @classmethod
    def redeem_points(
        cls,
        customer_code: str,
        merchant_code: str,
        points: int,
        description: str,
        *,
        idempotency_key: str = "",
        reference: str = "",
        created_by: str = "",
    ) -> LedgerAppend:
        """
        Spend points (points is the positive amount to deduct).

        Raises:
            RewardmanError: INVALID_POINTS, INSUFFICIENT_BALANCE
        """
        return RewardLedger.append(
            customer_code,
            merchant_code,
            EntryKind.REDEMPTION,
            -points,
            description,
            idempotency_key=idempotency_key,
            reference=reference,
            created_by=created_by,
        )
