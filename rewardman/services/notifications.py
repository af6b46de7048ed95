"""Notification dispatch - fire-and-forget, after commit.

Nothing here can fail a ledger operation: backend errors are logged and
swallowed, and dispatch only happens once the transaction has committed.
"""

import logging

from django.db import transaction
from django.utils.module_loading import import_string

from rewardman.conf import rewardman_settings
from rewardman.protocols.notifications import NotificationBackend

logger = logging.getLogger(__name__)


def get_backend() -> NotificationBackend | None:
    """Instantiate the configured NotificationBackend (None when disabled)."""
    backend_path = rewardman_settings.NOTIFICATION_BACKEND
    if not backend_path:
        return None
    backend_class = import_string(backend_path)
    return backend_class()


def _dispatch(method: str, customer_code: str, payload) -> None:
    try:
        backend = get_backend()
        if backend is None:
            return
        getattr(backend, method)(customer_code, payload)
    except Exception:
        logger.exception("Notification %s failed for customer %s", method, customer_code)


def points_awarded(customer_code: str, award) -> None:
    """Schedule notify_points_awarded for after commit."""
    transaction.on_commit(lambda: _dispatch("notify_points_awarded", customer_code, award))


def gift_card_issued(customer_code: str, gift_card) -> None:
    """Schedule notify_gift_card_issued for after commit."""
    transaction.on_commit(lambda: _dispatch("notify_gift_card_issued", customer_code, gift_card))


def send_signal_on_commit(signal, sender, **kwargs) -> None:
    """Send a Django signal after commit; receiver errors are logged, not raised."""

    def _send():
        for receiver, response in signal.send_robust(sender=sender, **kwargs):
            if isinstance(response, Exception):
                logger.error(
                    "Signal receiver %r failed: %s",
                    receiver,
                    response,
                    exc_info=response,
                )

    transaction.on_commit(_send)
