"""Visit model - customer check-ins."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class VisitSource(models.TextChoices):
    POS = "pos", _("Point of sale")
    QR = "qr", _("QR check-in")
    WHATSAPP = "whatsapp", _("WhatsApp")


class Visit(models.Model):
    """A customer check-in at a merchant branch. Feeds frequency challenges."""

    account = models.ForeignKey(
        "rewardman.RewardAccount",
        on_delete=models.PROTECT,
        related_name="visits",
        verbose_name=_("account"),
    )
    branch = models.CharField(_("branch"), max_length=100, blank=True)
    source = models.CharField(
        _("source"),
        max_length=20,
        choices=VisitSource.choices,
        default=VisitSource.POS,
    )
    purchase_amount = models.DecimalField(
        _("purchase amount"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    visited_at = models.DateTimeField(_("visited at"), default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _("visit")
        verbose_name_plural = _("visits")
        ordering = ["-visited_at"]
        indexes = [
            models.Index(fields=["account", "-visited_at"], name="rewardman_visit_account_idx"),
        ]

    def __str__(self):
        return f"{self.account} @ {self.visited_at:%Y-%m-%d %H:%M}"
