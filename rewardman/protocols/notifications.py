"""Notification protocol for customer-facing messages (WhatsApp, etc.)."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rewardman.engine.types import PointsAward
    from rewardman.models import GiftCard


@runtime_checkable
class NotificationBackend(Protocol):
    """
    Protocol for telling customers about awards and gift cards.

    Called after the ledger transaction commits. Implementations may do
    network I/O; any exception they raise is logged and swallowed, and
    never affects points or gift cards.

    Configuration in settings.py:
        REWARDMAN = {
            "NOTIFICATION_BACKEND": "myproject.whatsapp.EvolutionNotificationBackend",
        }
    """

    def notify_points_awarded(self, customer_code: str, award: "PointsAward") -> None:
        """Points were added for a purchase."""
        ...

    def notify_gift_card_issued(self, customer_code: str, gift_card: "GiftCard") -> None:
        """A gift card was issued to the customer."""
        ...
