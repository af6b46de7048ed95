"""Rewardman protocols."""

from rewardman.protocols.notifications import NotificationBackend

__all__ = [
    "NotificationBackend",
]
