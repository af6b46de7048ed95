"""Gift card issuance and lifecycle."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from rewardman.conf import rewardman_settings
from rewardman.engine.thresholds import cards_to_issue, missing_sequences, multiples
from rewardman.engine.types import ProgramConfig
from rewardman.exceptions import RewardmanError
from rewardman.gates import Gates
from rewardman.models import GiftCard, GiftCardStatus, RewardAccount
from rewardman.services import notifications
from rewardman.signals import gift_card_expired, gift_card_issued, gift_card_redeemed

logger = logging.getLogger(__name__)

# No I, O, 0 or 1: codes are read aloud and typed at the counter
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_code() -> str:
    """Random code in the form GC-XXXX-XXXX-XXXX."""
    groups = [
        "".join(
            secrets.choice(CODE_ALPHABET)
            for _ in range(rewardman_settings.GIFT_CARD_CODE_GROUP_SIZE)
        )
        for _ in range(rewardman_settings.GIFT_CARD_CODE_GROUPS)
    ]
    return "-".join([rewardman_settings.GIFT_CARD_CODE_PREFIX, *groups])


def unique_code() -> str:
    code = generate_code()
    while GiftCard.objects.filter(code=code).exists():
        code = generate_code()
    return code


class GiftCardIssuer:
    """
    Mint gift cards when lifetime points cross threshold multiples.

    Runs inside the ledger append's transaction. Cards carry the multiple
    they were issued for (sequence), and (account, sequence) is unique,
    so a card can never be issued twice for the same crossing.
    """

    @classmethod
    def on_balance_changed(
        cls,
        account: RewardAccount,
        old_points: int,
        new_points: int,
        config: ProgramConfig,
        as_of: datetime | None = None,
    ) -> list[GiftCard]:
        """
        Issue floor(new/t) - floor(old/t) cards (never negative).

        Args:
            account: Account whose points changed
            old_points: Lifetime points before the append
            new_points: Lifetime points after the append
            config: Merchant program config
            as_of: Issue timestamp (defaults to now)

        Returns:
            Newly issued GiftCards (may be empty)
        """
        threshold = config.gift_card_threshold
        if not config.issues_gift_cards or cards_to_issue(old_points, new_points, threshold) == 0:
            return []

        issued = set(account.gift_cards.values_list("sequence", flat=True))
        sequences = [
            seq
            for seq in range(multiples(old_points, threshold) + 1, multiples(new_points, threshold) + 1)
            if seq not in issued
        ]
        return [cls._mint(account, seq, config, as_of or timezone.now()) for seq in sequences]

    @classmethod
    def reconcile(
        cls,
        account: RewardAccount,
        config: ProgramConfig | None = None,
        as_of: datetime | None = None,
    ) -> list[GiftCard]:
        """
        Re-derive cards missing for the account's lifetime points.

        Recovers from an issuance that failed after its ledger append.
        Safe to run any number of times.
        """
        config = config or account.merchant.program_config()
        if not config.issues_gift_cards:
            return []

        with transaction.atomic():
            account = RewardAccount.objects.select_related("customer", "merchant").get(pk=account.pk)
            issued = set(account.gift_cards.values_list("sequence", flat=True))
            sequences = missing_sequences(account.lifetime_points, config.gift_card_threshold, issued)
            cards = [cls._mint(account, seq, config, as_of or timezone.now()) for seq in sequences]

        if cards:
            logger.warning(
                "Reconciled %d missing gift card(s) for %s@%s",
                len(cards),
                account.customer.code,
                account.merchant.code,
            )
        return cards

    @classmethod
    def progress(
        cls,
        account: RewardAccount,
        config: ProgramConfig | None = None,
        now: datetime | None = None,
    ) -> "GiftCardProgress":
        """
        How far the account is from its next gift card. Read-only.

        cards_available counts cards still redeemable at now; overdue
        cards are not counted even if the sweep has not flipped them yet.
        """
        config = config or account.merchant.program_config()
        now = now or timezone.now()
        lifetime = account.lifetime_points
        threshold = config.gift_card_threshold

        available = account.gift_cards.filter(status=GiftCardStatus.AVAILABLE).exclude(
            expires_at__lt=now
        )
        if not config.issues_gift_cards:
            return GiftCardProgress(
                lifetime_points=lifetime,
                threshold=0,
                next_threshold=None,
                points_needed=None,
                cards_earned=0,
                cards_issued=account.gift_cards.count(),
                cards_available=available.count(),
            )

        earned = multiples(lifetime, threshold)
        next_threshold = (earned + 1) * threshold
        return GiftCardProgress(
            lifetime_points=lifetime,
            threshold=threshold,
            next_threshold=next_threshold,
            points_needed=next_threshold - lifetime,
            cards_earned=earned,
            cards_issued=account.gift_cards.count(),
            cards_available=available.count(),
        )

        return cards

    @classmethod
    def _mint(
        cls,
        account: RewardAccount,
        sequence: int,
        config: ProgramConfig,
        as_of: datetime,
    ) -> GiftCard:
        expires_at = None
        if config.gift_card_expiry_days:
            expires_at = as_of + timedelta(days=config.gift_card_expiry_days)

        card = GiftCard.objects.create(
            account=account,
            merchant_id=account.merchant_id,
            code=unique_code(),
            value=Decimal(config.gift_card_value),
            sequence=sequence,
            points_threshold=config.gift_card_threshold,
            issued_at=as_of,
            expires_at=expires_at,
        )
        logger.info(
            "Gift card %s (%s) issued to %s@%s for multiple %d",
            card.code,
            card.value,
            account.customer.code,
            account.merchant.code,
            sequence,
        )
        notifications.gift_card_issued(account.customer.code, card)
        notifications.send_signal_on_commit(gift_card_issued, sender=GiftCard, gift_card=card)
        return card


@dataclass(frozen=True)
class GiftCardProgress:
    """Distance to the next gift card.

    next_threshold and points_needed are None when the merchant issues
    no gift cards.
    """

    lifetime_points: int
    threshold: int
    next_threshold: int | None
    points_needed: int | None
    cards_earned: int
    cards_issued: int
    cards_available: int


@dataclass
class GiftCardValidation:
    """Result of a non-raising gift card check at the counter."""

    valid: bool
    code: str
    value: Decimal | None = None
    status: str | None = None
    customer_code: str | None = None
    expires_at: datetime | None = None
    error_code: str | None = None
    message: str | None = None


class GiftCardLifecycle:
    """
    available -> redeemed | expired. Both end states are terminal.

    Expiry is lazy: overdue cards are flipped to expired whenever they are
    read through this class. expire_overdue() is the optional batch sweep.
    """

    @classmethod
    def get(cls, gift_card: str | int, merchant_code: str | None = None) -> GiftCard | None:
        """Get a card by code or id, applying lazy expiry."""
        card = cls._lookup(gift_card, merchant_code)
        if card is not None and card.is_overdue():
            cls._expire_cards(GiftCard.objects.filter(pk=card.pk), timezone.now())
            card.refresh_from_db()
        return card

    @classmethod
    def redeem(
        cls,
        gift_card: str | int,
        merchant_code: str | None = None,
        redeemed_by: str = "",
        notes: str = "",
        now: datetime | None = None,
    ) -> GiftCard:
        """
        Redeem an available card.

        redeemed_by and notes record who took the card at the counter
        and anything they noted (order number, table).

        An overdue card is flipped to expired (and that change is kept)
        before GIFT_CARD_EXPIRED is raised.

        Raises:
            RewardmanError: GIFT_CARD_NOT_FOUND, GIFT_CARD_ALREADY_REDEEMED,
                GIFT_CARD_ALREADY_EXPIRED, GIFT_CARD_EXPIRED
        """
        now = now or timezone.now()

        with transaction.atomic():
            card = cls._lookup(gift_card, merchant_code)
            if card is None:
                raise RewardmanError("GIFT_CARD_NOT_FOUND", gift_card=str(gift_card))

            expired = card.is_overdue(now) and cls._expire_cards(
                GiftCard.objects.filter(pk=card.pk), now
            )
            if not expired:
                Gates.gift_card_transition(card.status, GiftCardStatus.REDEEMED)
                updated = GiftCard.objects.filter(
                    pk=card.pk, status=GiftCardStatus.AVAILABLE
                ).update(
                    status=GiftCardStatus.REDEEMED,
                    redeemed_at=now,
                    redeemed_by=redeemed_by,
                    redemption_notes=notes,
                )
                card.refresh_from_db()
                if not updated:
                    Gates.gift_card_transition(card.status, GiftCardStatus.REDEEMED)

        if expired:
            logger.warning("Redemption of expired gift card %s rejected", card.code)
            raise RewardmanError(
                "GIFT_CARD_EXPIRED",
                gift_card_code=card.code,
                expires_at=card.expires_at.isoformat(),
            )

        logger.info("Gift card %s (%s) redeemed by %s", card.code, card.value, redeemed_by or "-")
        notifications.send_signal_on_commit(gift_card_redeemed, sender=GiftCard, gift_card=card)
        return card

    @classmethod
    def validate(
        cls,
        code: str,
        merchant_code: str | None = None,
        now: datetime | None = None,
    ) -> GiftCardValidation:
        """Check whether a card could be redeemed right now (never raises)."""
        now = now or timezone.now()
        card = cls._lookup(code, merchant_code)
        if card is None:
            return GiftCardValidation(
                valid=False,
                code=code,
                error_code="GIFT_CARD_NOT_FOUND",
                message=RewardmanError("GIFT_CARD_NOT_FOUND").message,
            )

        if card.is_overdue(now):
            cls._expire_cards(GiftCard.objects.filter(pk=card.pk), now)
            card.refresh_from_db()

        error_code = {
            GiftCardStatus.REDEEMED: "GIFT_CARD_ALREADY_REDEEMED",
            GiftCardStatus.EXPIRED: "GIFT_CARD_EXPIRED",
        }.get(card.status)

        return GiftCardValidation(
            valid=error_code is None,
            code=card.code,
            value=card.value,
            status=card.status,
            customer_code=card.account.customer.code,
            expires_at=card.expires_at,
            error_code=error_code,
            message=RewardmanError(error_code).message if error_code else None,
        )

    @classmethod
    def list_gift_cards(
        cls,
        customer_code: str,
        status: str | None = None,
        merchant_code: str | None = None,
        now: datetime | None = None,
    ) -> list[GiftCard]:
        """Customer's cards, newest first, with overdue cards expired first."""
        qs = GiftCard.objects.select_related("account__customer", "merchant").filter(
            account__customer__code=customer_code,
        )
        if merchant_code:
            qs = qs.filter(merchant__code=merchant_code)

        cls._expire_cards(qs, now or timezone.now())

        if status:
            qs = qs.filter(status=status)
        return list(qs)

    @classmethod
    def expire_overdue(cls, now: datetime | None = None, merchant_code: str | None = None) -> int:
        """
        Batch-expire available cards past expires_at.

        Optional operational sweep (see rewardman_expire_gift_cards).

        Returns:
            Number of cards expired
        """
        qs = GiftCard.objects.all()
        if merchant_code:
            qs = qs.filter(merchant__code=merchant_code)
        count = cls._expire_cards(qs, now or timezone.now())
        if count:
            logger.info("Expired %d overdue gift card(s)", count)
        return count

    @classmethod
    def _expire_cards(cls, qs, now: datetime) -> int:
        """Flip overdue available cards in qs to expired; returns how many."""
        overdue = list(
            qs.filter(status=GiftCardStatus.AVAILABLE, expires_at__lt=now).values_list("pk", flat=True)
        )
        if not overdue:
            return 0
        count = GiftCard.objects.filter(pk__in=overdue, status=GiftCardStatus.AVAILABLE).update(
            status=GiftCardStatus.EXPIRED
        )
        for card in GiftCard.objects.filter(pk__in=overdue, status=GiftCardStatus.EXPIRED):
            notifications.send_signal_on_commit(gift_card_expired, sender=GiftCard, gift_card=card)
        return count

    @classmethod
    def _lookup(cls, gift_card: str | int, merchant_code: str | None) -> GiftCard | None:
        qs = GiftCard.objects.select_related("account__customer", "merchant")
        if merchant_code:
            qs = qs.filter(merchant__code=merchant_code)
        if isinstance(gift_card, int):
            return qs.filter(pk=gift_card).first()
        return qs.filter(code=gift_card.strip().upper()).first()
