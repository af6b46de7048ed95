"""GiftCard model."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class GiftCardStatus(models.TextChoices):
    AVAILABLE = "available", _("Available")
    REDEEMED = "redeemed", _("Redeemed")
    EXPIRED = "expired", _("Expired")


class GiftCard(models.Model):
    """
    Reward minted when lifetime points cross a threshold multiple.

    Lifecycle moves forward only: available -> redeemed, or
    available -> expired. Cards are never deleted. sequence is the
    threshold multiple the card was issued for; (account, sequence) is
    unique, which makes issuance exactly-once.
    """

    account = models.ForeignKey(
        "rewardman.RewardAccount",
        on_delete=models.PROTECT,
        related_name="gift_cards",
        verbose_name=_("account"),
    )
    merchant = models.ForeignKey(
        "rewardman.Merchant",
        on_delete=models.PROTECT,
        related_name="gift_cards",
        verbose_name=_("merchant"),
    )

    code = models.CharField(_("code"), max_length=40, unique=True)
    value = models.DecimalField(_("value"), max_digits=10, decimal_places=2)
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=GiftCardStatus.choices,
        default=GiftCardStatus.AVAILABLE,
        db_index=True,
    )
    sequence = models.PositiveIntegerField(_("threshold multiple"))
    points_threshold = models.PositiveIntegerField(_("points threshold"))

    issued_at = models.DateTimeField(_("issued at"), default=timezone.now)
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True, db_index=True)
    redeemed_at = models.DateTimeField(_("redeemed at"), null=True, blank=True)
    redeemed_by = models.CharField(_("redeemed by"), max_length=100, blank=True)
    redemption_notes = models.TextField(_("redemption notes"), blank=True)

    class Meta:
        verbose_name = _("gift card")
        verbose_name_plural = _("gift cards")
        ordering = ["-issued_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "sequence"],
                name="rewardman_gift_card_once_per_multiple",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.value}) - {self.status}"

    def is_overdue(self, now=None) -> bool:
        """Past expires_at while still available."""
        if self.status != GiftCardStatus.AVAILABLE or self.expires_at is None:
            return False
        return (now or timezone.now()) > self.expires_at
