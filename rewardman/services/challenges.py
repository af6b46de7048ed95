"""Challenge service - merchant-side challenge management."""

import logging
from datetime import datetime

from django.db import transaction
from django.db.models import Q

from rewardman.engine.challenges import parse_challenge_config
from rewardman.engine.types import ChallengeRule
from rewardman.exceptions import RewardmanError
from rewardman.gates import Gates
from rewardman.models import Challenge, Merchant

logger = logging.getLogger(__name__)

# Editing any of these changes what a completion means
VERSIONED_FIELDS = ("name", "challenge_type", "config", "points")

EDITABLE_FIELDS = (
    *VERSIONED_FIELDS,
    "description",
    "starts_at",
    "ends_at",
    "is_repeatable",
    "max_completions_per_day",
    "max_completions_total",
)


class ChallengeService:
    """
    Challenge CRUD.

    Uses @classmethod for extensibility (consistent with other services).
    Configs are validated (G4) and stored in their normalized form.
    """

    @classmethod
    def get(cls, challenge_id: int, merchant_code: str | None = None) -> Challenge | None:
        qs = Challenge.objects.select_related("merchant")
        if merchant_code:
            qs = qs.filter(merchant__code=merchant_code)
        return qs.filter(pk=challenge_id).first()

    @classmethod
    def create(
        cls,
        merchant_code: str,
        name: str,
        challenge_type: str,
        config: dict,
        points: int,
        **extra,
    ) -> Challenge:
        """
        Create a challenge.

        Raises:
            RewardmanError: MERCHANT_NOT_FOUND, INVALID_CHALLENGE_CONFIG
        """
        try:
            merchant = Merchant.objects.get(code=merchant_code)
        except Merchant.DoesNotExist:
            raise RewardmanError("MERCHANT_NOT_FOUND", merchant_code=merchant_code)

        Gates.challenge_config(challenge_type, config)
        cls._check_points(points)

        unknown = set(extra) - set(EDITABLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown challenge fields: {', '.join(sorted(unknown))}")

        challenge = Challenge.objects.create(
            merchant=merchant,
            name=name,
            challenge_type=challenge_type,
            config=parse_challenge_config(challenge_type, config).as_dict(),
            points=points,
            **extra,
        )
        logger.info("Challenge %s (%s) created for %s", challenge.pk, name, merchant_code)
        return challenge

    @classmethod
    def update(cls, challenge_id: int, **fields) -> Challenge:
        """
        Edit a challenge. Changing name, type, config or points bumps version.

        Raises:
            RewardmanError: CHALLENGE_NOT_FOUND, INVALID_CHALLENGE_CONFIG
        """
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown challenge fields: {', '.join(sorted(unknown))}")

        with transaction.atomic():
            challenge = Challenge.objects.select_for_update().filter(pk=challenge_id).first()
            if challenge is None:
                raise RewardmanError("CHALLENGE_NOT_FOUND", challenge_id=challenge_id)

            challenge_type = fields.get("challenge_type", challenge.challenge_type)
            config = fields.get("config", challenge.config)
            if "challenge_type" in fields or "config" in fields:
                Gates.challenge_config(challenge_type, config)
                fields["config"] = parse_challenge_config(challenge_type, config).as_dict()
            if "points" in fields:
                cls._check_points(fields["points"])

            bump = any(
                name in fields and fields[name] != getattr(challenge, name)
                for name in VERSIONED_FIELDS
            )
            for name, value in fields.items():
                setattr(challenge, name, value)
            if bump:
                challenge.version += 1
            challenge.save()

        logger.info("Challenge %s updated (version %d)", challenge.pk, challenge.version)
        return challenge

    @classmethod
    def pause(cls, challenge_id: int) -> Challenge:
        return cls._set_active(challenge_id, False)

    @classmethod
    def resume(cls, challenge_id: int) -> Challenge:
        return cls._set_active(challenge_id, True)

    @classmethod
    def delete(cls, challenge_id: int) -> None:
        """
        Delete a challenge that has never been completed.

        Raises:
            RewardmanError: CHALLENGE_NOT_FOUND, CHALLENGE_HAS_COMPLETIONS
        """
        challenge = cls.get(challenge_id)
        if challenge is None:
            raise RewardmanError("CHALLENGE_NOT_FOUND", challenge_id=challenge_id)
        if challenge.completions.exists():
            raise RewardmanError("CHALLENGE_HAS_COMPLETIONS", challenge_id=challenge_id)
        challenge.delete()
        logger.info("Challenge %s deleted", challenge_id)

    @classmethod
    def active_for(cls, merchant_code: str, as_of: datetime) -> list[ChallengeRule]:
        """Live challenges of a merchant as evaluator rules."""
        qs = Challenge.objects.filter(
            merchant__code=merchant_code,
            is_active=True,
        ).filter(
            Q(starts_at__isnull=True) | Q(starts_at__lte=as_of),
            Q(ends_at__isnull=True) | Q(ends_at__gte=as_of),
        )
        return [challenge.as_rule() for challenge in qs]

    @classmethod
    def _set_active(cls, challenge_id: int, is_active: bool) -> Challenge:
        updated = Challenge.objects.filter(pk=challenge_id).update(is_active=is_active)
        if not updated:
            raise RewardmanError("CHALLENGE_NOT_FOUND", challenge_id=challenge_id)
        logger.info("Challenge %s %s", challenge_id, "resumed" if is_active else "paused")
        return Challenge.objects.get(pk=challenge_id)

    @staticmethod
    def _check_points(points: int) -> None:
        if points is None or points <= 0:
            raise RewardmanError(
                "INVALID_CHALLENGE_CONFIG",
                message="Challenge points must be positive",
                points=points,
            )
