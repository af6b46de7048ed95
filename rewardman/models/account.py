"""RewardAccount model - per-merchant balance projection."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class RewardAccount(models.Model):
    """
    A customer's standing with one merchant.

    points_balance is a cached projection: it always equals the sum of
    the account's LedgerEntry.points and is written only by
    RewardLedger.append, through a conditional update on version.

    lifetime_points never decreases; gift card thresholds are measured
    against it.
    """

    customer = models.ForeignKey(
        "rewardman.Customer",
        on_delete=models.PROTECT,
        related_name="accounts",
        verbose_name=_("customer"),
    )
    merchant = models.ForeignKey(
        "rewardman.Merchant",
        on_delete=models.PROTECT,
        related_name="accounts",
        verbose_name=_("merchant"),
    )

    points_balance = models.IntegerField(
        _("points balance"),
        default=0,
        help_text=_("Sum of all ledger entries"),
    )
    lifetime_points = models.IntegerField(
        _("lifetime points"),
        default=0,
        help_text=_("Total points ever earned (never decreases)"),
    )
    visits_count = models.PositiveIntegerField(_("visits"), default=0)
    last_visit_at = models.DateTimeField(_("last visit"), null=True, blank=True)

    version = models.PositiveIntegerField(_("version"), default=0)

    enrolled_at = models.DateTimeField(_("enrolled at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("reward account")
        verbose_name_plural = _("reward accounts")
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "merchant"],
                name="rewardman_account_unique_customer_merchant",
            ),
            models.CheckConstraint(
                condition=models.Q(points_balance__gte=0),
                name="rewardman_account_balance_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.customer.code}@{self.merchant.code}: {self.points_balance}pts"
