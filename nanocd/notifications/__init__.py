"""Notification system for nanocd.

Tells a namespace's webhook when an image change has been applied.
Delivery is best-effort and never affects the recorded apply outcome.

Exports:
    ChangeNotification      -- What changed: namespace, kind, workload, patch.
    NotificationSink        -- Abstract base for all sink implementations.
    NullNotificationSink    -- Drops everything (tests, no targets configured).
    WebhookNotificationSink -- JSON POST webhook sink (Discord-compatible).
    deliver                 -- Send through a sink without ever raising.
"""

from __future__ import annotations

from nanocd.notifications.manager import (
    ChangeNotification,
    NotificationSink,
    NullNotificationSink,
    deliver,
)
from nanocd.notifications.webhook import WebhookNotificationSink

__all__ = [
    "ChangeNotification",
    "NotificationSink",
    "NullNotificationSink",
    "WebhookNotificationSink",
    "deliver",
]
