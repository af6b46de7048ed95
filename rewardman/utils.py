"""Rewardman helpers."""

import phonenumbers

from rewardman.conf import rewardman_settings


def normalize_phone(phone: str, region: str | None = None) -> str:
    """
    Normalize a phone number to E.164.

    Returns an empty string when the number cannot be parsed or is invalid.
    """
    if not phone:
        return ""
    try:
        parsed = phonenumbers.parse(phone, region or rewardman_settings.DEFAULT_REGION)
    except phonenumbers.NumberParseException:
        return ""
    if not phonenumbers.is_valid_number(parsed):
        return ""
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
