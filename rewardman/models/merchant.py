"""Merchant model - loyalty program configuration per business."""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from rewardman.engine.types import ProgramConfig


def _default_timezone() -> str:
    return getattr(settings, "TIME_ZONE", None) or "UTC"


class Merchant(models.Model):
    """
    A business running a loyalty program.

    The program fields are read once per operation into an immutable
    ProgramConfig (see program_config()); the engine never looks them
    up on its own.
    """

    code = models.SlugField(_("code"), max_length=50, unique=True)
    name = models.CharField(_("name"), max_length=200)
    timezone = models.CharField(
        _("timezone"),
        max_length=64,
        default=_default_timezone,
        help_text=_("IANA timezone used for daily caps and challenge windows"),
    )

    # Points program
    points_per_unit = models.DecimalField(
        _("points per unit"),
        max_digits=10,
        decimal_places=4,
        default=Decimal("1"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text=_("Points earned per currency unit spent"),
    )
    minimum_purchase = models.DecimalField(
        _("minimum purchase"),
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    daily_points_limit = models.PositiveIntegerField(
        _("daily points limit"),
        null=True,
        blank=True,
        help_text=_("Maximum points per customer per local day (empty = no limit)"),
    )

    # Gift cards
    gift_card_threshold = models.PositiveIntegerField(
        _("gift card threshold"),
        default=100,
        help_text=_("Lifetime points per gift card (0 disables issuance)"),
    )
    gift_card_value = models.DecimalField(
        _("gift card value"),
        max_digits=10,
        decimal_places=2,
        default=Decimal("5"),
    )
    gift_card_expiry_days = models.PositiveIntegerField(
        _("gift card expiry (days)"),
        null=True,
        blank=True,
        default=30,
        help_text=_("Days until an issued card expires (empty = never)"),
    )

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("merchant")
        verbose_name_plural = _("merchants")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def program_config(self) -> ProgramConfig:
        """Snapshot of the program settings for one engine call."""
        return ProgramConfig(
            merchant_code=self.code,
            points_per_unit=Decimal(self.points_per_unit),
            minimum_purchase=Decimal(self.minimum_purchase),
            daily_points_limit=self.daily_points_limit,
            gift_card_threshold=self.gift_card_threshold,
            gift_card_value=Decimal(self.gift_card_value),
            gift_card_expiry_days=self.gift_card_expiry_days,
            timezone=self.timezone,
        )
