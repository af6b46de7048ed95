"""RewardLedger - the authoritative, append-only record of point movements.

The account's points_balance is a projection of its entries. Every
append runs in one transaction.atomic() block:

    read projection -> G1/G2 gates -> conditional UPDATE on version
    -> insert entry -> gift card issuance

A lost race on the version precondition raises CONCURRENT_UPDATE with
nothing persisted; the caller retries with the same idempotency key.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from rewardman.conf import rewardman_settings
from rewardman.engine.periods import local_midnight
from rewardman.engine.types import ProgramConfig
from rewardman.exceptions import RewardmanError
from rewardman.gates import Gates
from rewardman.models import Customer, EntryKind, GiftCard, LedgerEntry, Merchant, RewardAccount
from rewardman.services import notifications
from rewardman.signals import ledger_entry_appended

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = LedgerEntry._meta.get_field("description").max_length


@dataclass(frozen=True)
class LedgerAppend:
    """Outcome of RewardLedger.append."""

    entry: LedgerEntry
    account: RewardAccount
    gift_cards: tuple[GiftCard, ...] = ()
    duplicate: bool = False

    @property
    def balance(self) -> int:
        return self.account.points_balance


class RewardLedger:
    """
    Ledger operations.

    Uses @classmethod for extensibility (consistent with other services).
    """

    # ======================================================================
    # Accounts
    # ======================================================================

    @classmethod
    def get_account(cls, customer_code: str, merchant_code: str) -> RewardAccount | None:
        """Get the customer's account with a merchant."""
        try:
            return RewardAccount.objects.select_related("customer", "merchant").get(
                customer__code=customer_code,
                customer__is_active=True,
                merchant__code=merchant_code,
            )
        except RewardAccount.DoesNotExist:
            return None

    @classmethod
    def enroll(cls, customer_code: str, merchant_code: str) -> RewardAccount:
        """
        Get or create the customer's account with a merchant.

        Idempotent - returns the existing account if already enrolled.

        Raises:
            RewardmanError: CUSTOMER_NOT_FOUND / MERCHANT_NOT_FOUND
        """
        try:
            customer = Customer.objects.get(code=customer_code, is_active=True)
        except Customer.DoesNotExist:
            raise RewardmanError("CUSTOMER_NOT_FOUND", customer_code=customer_code)
        try:
            merchant = Merchant.objects.get(code=merchant_code, is_active=True)
        except Merchant.DoesNotExist:
            raise RewardmanError("MERCHANT_NOT_FOUND", merchant_code=merchant_code)

        account, _ = RewardAccount.objects.select_related("customer", "merchant").get_or_create(
            customer=customer,
            merchant=merchant,
        )
        return account

    @classmethod
    def balance(cls, customer_code: str, merchant_code: str) -> int:
        """Current points balance. Returns 0 if not enrolled."""
        account = cls.get_account(customer_code, merchant_code)
        return account.points_balance if account else 0

    # ======================================================================
    # Append
    # ======================================================================

    @classmethod
    def append(
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
        as_of: datetime | None = None,
        expected_version: int | None = None,
    ) -> LedgerAppend:
        """
        Append one entry and return the updated account.

        Args:
            customer_code: Customer code
            merchant_code: Merchant code
            kind: earn | adjustment | redemption
            points: Signed delta (earn > 0, redemption < 0, adjustment != 0)
            description: Reason shown in history (at most 200 characters)
            idempotency_key: Token from the originating request; a replay
                with the same key and delta returns the original entry
            reference: External reference (pos:8812)
            purchase_amount: Purchase that produced the entry, if any
            metadata: Extra JSON stored with the entry
            created_by: Operator who triggered the entry
            as_of: Entry timestamp (defaults to now)
            expected_version: Account version the caller computed the entry
                from; a newer version raises CONCURRENT_UPDATE

        Returns:
            LedgerAppend (duplicate=True when the key was already applied)

        Raises:
            RewardmanError: INVALID_POINTS, INVALID_DESCRIPTION,
                INSUFFICIENT_BALANCE, IDEMPOTENCY_CONFLICT, CONCURRENT_UPDATE,
                CUSTOMER_NOT_FOUND, MERCHANT_NOT_FOUND
        """
        account = cls.enroll(customer_code, merchant_code)
        return cls.append_to_account(
            account,
            kind,
            points,
            description,
            idempotency_key=idempotency_key,
            reference=reference,
            purchase_amount=purchase_amount,
            metadata=metadata,
            created_by=created_by,
            as_of=as_of,
            expected_version=expected_version,
        )

    @classmethod
    def append_to_account(
        cls,
        account: RewardAccount,
        kind: str,
        points: int,
        description: str,
        *,
        idempotency_key: str = "",
        reference: str = "",
        purchase_amount: Decimal | None = None,
        metadata: dict | None = None,
        created_by: str = "",
        as_of: datetime | None = None,
        config: ProgramConfig | None = None,
        expected_version: int | None = None,
    ) -> LedgerAppend:
        """Append to an already-resolved account. See append()."""
        Gates.entry_sign(kind, points)
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise RewardmanError(
                "INVALID_DESCRIPTION",
                length=len(description),
                max_length=DESCRIPTION_MAX_LENGTH,
            )

        if idempotency_key:
            existing = cls.find_by_key(account.merchant_id, idempotency_key)
            if existing is not None:
                return cls._replay(existing, account, kind, points)

        try:
            with transaction.atomic():
                return cls._apply(
                    account,
                    kind,
                    points,
                    description,
                    idempotency_key=idempotency_key,
                    reference=reference,
                    purchase_amount=purchase_amount,
                    metadata=metadata or {},
                    created_by=created_by,
                    as_of=as_of or timezone.now(),
                    config=config or account.merchant.program_config(),
                    expected_version=expected_version,
                )
        except IntegrityError:
            # Unique idempotency key: a concurrent request applied it first
            if idempotency_key:
                existing = cls.find_by_key(account.merchant_id, idempotency_key)
                if existing is not None:
                    return cls._replay(existing, account, kind, points)
            raise

    @classmethod
    def _apply(
        cls,
        account: RewardAccount,
        kind: str,
        points: int,
        description: str,
        *,
        idempotency_key: str,
        reference: str,
        purchase_amount: Decimal | None,
        metadata: dict,
        created_by: str,
        as_of: datetime,
        config: ProgramConfig,
        expected_version: int | None,
    ) -> LedgerAppend:
        from rewardman.services.gift_cards import GiftCardIssuer

        current = RewardAccount.objects.select_related("customer", "merchant").get(pk=account.pk)
        if expected_version is not None and current.version != expected_version:
            logger.warning(
                "Stale append for %s@%s (version %d, computed from %d)",
                current.customer.code,
                current.merchant.code,
                current.version,
                expected_version,
            )
            raise RewardmanError(
                "CONCURRENT_UPDATE",
                customer_code=current.customer.code,
                merchant_code=current.merchant.code,
            )
        Gates.non_negative_balance(current.points_balance, points)

        old_lifetime = current.lifetime_points
        new_balance = current.points_balance + points
        new_lifetime = old_lifetime + max(0, points)

        if not cls._conditional_update(current, new_balance, new_lifetime):
            raise RewardmanError(
                "CONCURRENT_UPDATE",
                customer_code=current.customer.code,
                merchant_code=current.merchant.code,
            )

        entry = LedgerEntry.objects.create(
            account=current,
            merchant_id=current.merchant_id,
            kind=kind,
            points=points,
            balance_after=new_balance,
            description=description,
            reference=reference,
            purchase_amount=purchase_amount,
            idempotency_key=idempotency_key,
            metadata=metadata,
            created_at=as_of,
            created_by=created_by,
        )

        gift_cards = []
        if new_lifetime > old_lifetime:
            gift_cards = GiftCardIssuer.on_balance_changed(
                current, old_lifetime, new_lifetime, config, as_of=as_of
            )

        logger.info(
            "Ledger %s %+d for %s@%s (balance %d -> %d, %d gift card(s))",
            kind,
            points,
            current.customer.code,
            current.merchant.code,
            new_balance - points,
            new_balance,
            len(gift_cards),
        )
        notifications.send_signal_on_commit(ledger_entry_appended, sender=LedgerEntry, entry=entry)
        return LedgerAppend(entry=entry, account=current, gift_cards=tuple(gift_cards))

    @classmethod
    def _conditional_update(cls, account: RewardAccount, new_balance: int, new_lifetime: int) -> bool:
        """
        Write the projection only if nobody else did since account was read.

        On success the in-memory account is updated to match.
        """
        now = timezone.now()
        updated = RewardAccount.objects.filter(pk=account.pk, version=account.version).update(
            points_balance=new_balance,
            lifetime_points=new_lifetime,
            version=account.version + 1,
            updated_at=now,
        )
        if not updated:
            return False
        account.points_balance = new_balance
        account.lifetime_points = new_lifetime
        account.version += 1
        account.updated_at = now
        return True

    @classmethod
    def find_by_key(cls, merchant_id: int, idempotency_key: str) -> LedgerEntry | None:
        return (
            LedgerEntry.objects.select_related("account__customer", "account__merchant")
            .filter(merchant_id=merchant_id, idempotency_key=idempotency_key)
            .first()
        )

    @classmethod
    def _replay(
        cls,
        existing: LedgerEntry,
        account: RewardAccount,
        kind: str,
        points: int,
    ) -> LedgerAppend:
        if existing.account_id != account.pk or existing.kind != kind or existing.points != points:
            raise RewardmanError(
                "IDEMPOTENCY_CONFLICT",
                idempotency_key=existing.idempotency_key,
                original_points=existing.points,
                requested_points=points,
            )
        logger.info("Duplicate ledger append ignored (key %s)", existing.idempotency_key)
        current = RewardAccount.objects.select_related("customer", "merchant").get(pk=account.pk)
        return LedgerAppend(entry=existing, account=current, duplicate=True)

    # ======================================================================
    # Queries
    # ======================================================================

    @classmethod
    def entries(
        cls,
        customer_code: str,
        merchant_code: str,
        kind: str | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntry]:
        """Ledger history for a customer, most recent first."""
        qs = LedgerEntry.objects.filter(
            account__customer__code=customer_code,
            account__merchant__code=merchant_code,
        )
        if kind:
            qs = qs.filter(kind=kind)
        return list(qs[: limit or rewardman_settings.LEDGER_HISTORY_LIMIT])

    @classmethod
    def recompute_balance(cls, account: RewardAccount) -> int:
        """Sum of all entry deltas - what points_balance must equal."""
        total = LedgerEntry.objects.filter(account=account).aggregate(total=Sum("points"))["total"]
        return total or 0

    @classmethod
    def recompute_lifetime(cls, account: RewardAccount) -> int:
        """Sum of positive deltas - what lifetime_points must equal."""
        total = LedgerEntry.objects.filter(account=account, points__gt=0).aggregate(
            total=Sum("points")
        )["total"]
        return total or 0

    @classmethod
    def repair_projection(cls, account: RewardAccount) -> bool:
        """
        Rewrite the account's balance and lifetime from its entries.

        Returns:
            True if the projection had drifted and was rewritten
        """
        with transaction.atomic():
            current = RewardAccount.objects.select_for_update().get(pk=account.pk)
            balance = cls.recompute_balance(current)
            lifetime = cls.recompute_lifetime(current)
            if (current.points_balance, current.lifetime_points) == (balance, lifetime):
                return False
            if not cls._conditional_update(current, balance, lifetime):
                raise RewardmanError("CONCURRENT_UPDATE", account_id=current.pk)
        logger.warning(
            "Projection repaired for account %s (balance %d, lifetime %d)",
            account.pk,
            balance,
            lifetime,
        )
        return True

    @classmethod
    def points_today(cls, account: RewardAccount, as_of: datetime, tz) -> int:
        """Points earned since local midnight of as_of."""
        total = (
            LedgerEntry.objects.filter(
                account=account,
                kind=EntryKind.EARN,
                created_at__gte=local_midnight(as_of, tz),
                created_at__lte=as_of,
            ).aggregate(total=Sum("points"))["total"]
        )
        return total or 0
