"""Notification sink interface and best-effort delivery.

NotificationSink      -- ABC every sink must implement.
NullNotificationSink  -- Accepts and drops everything; used in tests and
                         when no namespace has a notification target.
deliver               -- Sends one notification; never raises, so a failed
                         delivery can never change a recorded patch outcome.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import structlog

from nanocd.models.workloads import WorkloadKind
from nanocd.observability.metrics import notifications_total

_log = structlog.get_logger(component="notifications.manager")


@dataclass(frozen=True)
class ChangeNotification:
    """An applied image change for one workload."""

    namespace: str
    kind: WorkloadKind
    workload: str
    patch: dict[str, str] = field(default_factory=dict)

    def message(self) -> str:
        """Single human-readable line summarising the change."""
        changes = ", ".join(f"{container} -> {image}" for container, image in sorted(self.patch.items()))
        return f"nanocd updated {self.kind.display_name} {self.namespace}/{self.workload}: {changes}"


class NotificationSink(ABC):
    """Abstract base class for notification sinks.

    ``send`` should not raise; return ``False`` instead. ``deliver`` guards
    against sinks that raise anyway.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Identifier used in metrics and logs."""

    @abstractmethod
    async def send(self, target: str, notification: ChangeNotification) -> bool:
        """Deliver *notification* to *target*.

        Returns:
            True  -- accepted by the remote endpoint.
            False -- delivery failed (already logged inside implementation).
        """

    async def close(self) -> None:  # noqa: B027
        """Release connections. Default: nothing to release."""


class NullNotificationSink(NotificationSink):
    """Drops every notification. Keeps what it was given for inspection."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, ChangeNotification]] = []

    @property
    def channel_name(self) -> str:
        return "null"

    async def send(self, target: str, notification: ChangeNotification) -> bool:
        self.sent.append((target, notification))
        return True


async def deliver(sink: NotificationSink, target: str, notification: ChangeNotification) -> bool:
    """Deliver through *sink*, logging and counting the result. Never raises."""
    try:
        success = await sink.send(target, notification)
    except Exception as exc:  # noqa: BLE001
        _log.error(
            "notification_sink_unexpected_error",
            channel=sink.channel_name,
            namespace=notification.namespace,
            workload=notification.workload,
            error=str(exc),
        )
        success = False

    notifications_total.labels(success="true" if success else "false").inc()

    if success:
        _log.info(
            "notification_sent",
            channel=sink.channel_name,
            namespace=notification.namespace,
            resource=f"{notification.kind.display_name}/{notification.workload}",
        )
    else:
        _log.warning(
            "notification_failed",
            channel=sink.channel_name,
            namespace=notification.namespace,
            resource=f"{notification.kind.display_name}/{notification.workload}",
        )
    return success
