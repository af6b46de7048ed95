"""
Rewardman configuration.

Usage in settings.py:
    REWARDMAN = {
        "DEFAULT_REGION": "EC",
        "NOTIFICATION_BACKEND": "myproject.whatsapp.EvolutionNotificationBackend",
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class RewardmanSettings:
    """Rewardman configuration settings."""

    # Phone normalization default region
    DEFAULT_REGION: str = "EC"

    # Receives points/gift card notifications after commit
    NOTIFICATION_BACKEND: str = "rewardman.adapters.logging_backend.LoggingNotificationBackend"

    # Gift card codes: PREFIX-XXXX-XXXX-XXXX
    GIFT_CARD_CODE_PREFIX: str = "GC"
    GIFT_CARD_CODE_GROUPS: int = 3
    GIFT_CARD_CODE_GROUP_SIZE: int = 4

    # Default page size for ledger history queries
    LEDGER_HISTORY_LIMIT: int = 50


def get_rewardman_settings() -> RewardmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "REWARDMAN", {})
    return RewardmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_rewardman_settings(), name)


rewardman_settings = _LazySettings()
