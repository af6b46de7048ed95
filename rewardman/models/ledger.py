"""LedgerEntry model - append-only point movements."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class EntryKind(models.TextChoices):
    EARN = "earn", _("Earn")
    ADJUSTMENT = "adjustment", _("Adjustment")
    REDEMPTION = "redemption", _("Redemption")


class LedgerEntry(models.Model):
    """
    Immutable record of one signed point movement.

    Entries are never updated or deleted; corrections are new
    compensating entries. idempotency_key (when set) is unique per
    merchant so a retried request cannot be applied twice.
    """

    account = models.ForeignKey(
        "rewardman.RewardAccount",
        on_delete=models.PROTECT,
        related_name="entries",
        verbose_name=_("account"),
    )
    merchant = models.ForeignKey(
        "rewardman.Merchant",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
        verbose_name=_("merchant"),
    )

    kind = models.CharField(_("kind"), max_length=20, choices=EntryKind.choices)
    points = models.IntegerField(
        _("points"),
        help_text=_("Positive for earn, negative for redemption"),
    )
    balance_after = models.IntegerField(_("balance after"))

    description = models.CharField(_("description"), max_length=200)
    reference = models.CharField(
        _("reference"),
        max_length=100,
        blank=True,
        help_text=_("External id (ex: pos:8812)"),
    )
    purchase_amount = models.DecimalField(
        _("purchase amount"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    idempotency_key = models.CharField(
        _("idempotency key"),
        max_length=120,
        blank=True,
        default="",
    )
    metadata = models.JSONField(
        _("metadata"),
        default=dict,
        blank=True,
        help_text=_("Award breakdown and challenge snapshots"),
    )

    created_at = models.DateTimeField(_("created at"), default=timezone.now, db_index=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("ledger entry")
        verbose_name_plural = _("ledger entries")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["account", "-created_at"], name="rewardman_ledger_account_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["merchant", "idempotency_key"],
                condition=~models.Q(idempotency_key=""),
                name="rewardman_ledger_unique_idempotency_key",
            ),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts - {self.description}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Ledger entries are append-only")
        super().save(*args, **kwargs)
