"""Challenge models - merchant bonus rules and their completions."""

from django.db import models
from django.utils.translation import gettext_lazy as _

from rewardman.engine.challenges import parse_challenge_config
from rewardman.engine.types import ChallengeRule, ChallengeType as EngineChallengeType


class ChallengeType(models.TextChoices):
    AMOUNT_MIN = EngineChallengeType.AMOUNT_MIN.value, _("Minimum amount")
    TIME_BASED = EngineChallengeType.TIME_BASED.value, _("Visit time")
    FREQUENCY = EngineChallengeType.FREQUENCY.value, _("Visit frequency")
    CATEGORY = EngineChallengeType.CATEGORY.value, _("Product category")


class Challenge(models.Model):
    """
    Merchant-defined bonus rule.

    Editable and pausable. version is bumped whenever the name, type,
    config or points change, and every completion stores the version and
    name it was awarded under. Challenges with completions are paused,
    never deleted.
    """

    merchant = models.ForeignKey(
        "rewardman.Merchant",
        on_delete=models.CASCADE,
        related_name="challenges",
        verbose_name=_("merchant"),
    )
    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"), blank=True)
    challenge_type = models.CharField(_("type"), max_length=20, choices=ChallengeType.choices)
    config = models.JSONField(_("configuration"), default=dict, blank=True)
    points = models.PositiveIntegerField(_("bonus points"))

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    starts_at = models.DateTimeField(_("starts at"), null=True, blank=True)
    ends_at = models.DateTimeField(_("ends at"), null=True, blank=True)

    is_repeatable = models.BooleanField(_("repeatable"), default=True)
    max_completions_per_day = models.PositiveIntegerField(
        _("max completions per day"), null=True, blank=True
    )
    max_completions_total = models.PositiveIntegerField(
        _("max completions total"), null=True, blank=True
    )

    version = models.PositiveIntegerField(_("version"), default=1)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("challenge")
        verbose_name_plural = _("challenges")
        ordering = ["points", "id"]

    def __str__(self):
        return f"{self.name} (+{self.points}pts)"

    def as_rule(self) -> ChallengeRule:
        """Parsed, immutable snapshot for the evaluator."""
        return ChallengeRule(
            id=self.pk,
            name=self.name,
            challenge_type=EngineChallengeType(self.challenge_type),
            config=parse_challenge_config(self.challenge_type, self.config),
            points=self.points,
            version=self.version,
            is_active=self.is_active,
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            is_repeatable=self.is_repeatable,
            max_completions_per_day=self.max_completions_per_day,
            max_completions_total=self.max_completions_total,
        )


class ChallengeCompletion(models.Model):
    """
    A challenge bonus included in one earn entry.

    challenge_name/challenge_version are snapshots, so later edits to the
    challenge do not change how past awards read.
    """

    challenge = models.ForeignKey(
        Challenge,
        on_delete=models.PROTECT,
        related_name="completions",
        verbose_name=_("challenge"),
    )
    account = models.ForeignKey(
        "rewardman.RewardAccount",
        on_delete=models.PROTECT,
        related_name="challenge_completions",
        verbose_name=_("account"),
    )
    ledger_entry = models.ForeignKey(
        "rewardman.LedgerEntry",
        on_delete=models.PROTECT,
        related_name="challenge_completions",
        verbose_name=_("ledger entry"),
    )
    points = models.PositiveIntegerField(_("points"))
    challenge_name = models.CharField(_("challenge name"), max_length=200)
    challenge_version = models.PositiveIntegerField(_("challenge version"))
    window_start = models.DateTimeField(_("window start"), null=True, blank=True)
    completed_at = models.DateTimeField(_("completed at"), db_index=True)

    class Meta:
        verbose_name = _("challenge completion")
        verbose_name_plural = _("challenge completions")
        ordering = ["-completed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["challenge", "account", "window_start"],
                name="rewardman_completion_once_per_window",
            ),
        ]

    def __str__(self):
        return f"{self.challenge_name} v{self.challenge_version} +{self.points}pts"
