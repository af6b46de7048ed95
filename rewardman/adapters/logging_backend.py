"""Logging NotificationBackend adapter."""

import logging

from rewardman.engine.types import PointsAward

logger = logging.getLogger(__name__)


class LoggingNotificationBackend:
    """
    Default backend: writes notifications to the log instead of sending them.

    Replace with a WhatsApp/SMS backend in production:
        REWARDMAN = {
            "NOTIFICATION_BACKEND": "myproject.whatsapp.EvolutionNotificationBackend",
        }
    """

    def notify_points_awarded(self, customer_code: str, award: PointsAward) -> None:
        logger.info(
            "Points awarded to %s: +%s (base %s, bonus %s)",
            customer_code,
            award.total_points,
            award.base_points,
            award.bonus_points,
        )

    def notify_gift_card_issued(self, customer_code, gift_card) -> None:
        logger.info(
            "Gift card %s (%s) issued to %s",
            gift_card.code,
            gift_card.value,
            customer_code,
        )
