"""JSON webhook notification sink for nanocd.

POSTs ``{"content": "<message>"}``, the body Discord incoming webhooks
expect. Slack-compatible relays and generic receivers accept it as well.
"""

from __future__ import annotations

import httpx
import structlog

from nanocd.notifications.manager import ChangeNotification, NotificationSink

_log = structlog.get_logger(component="notifications.webhook")

# Discord rejects message content longer than this.
_MAX_CONTENT = 2000


class WebhookNotificationSink(NotificationSink):
    """Delivers change notifications by POSTing JSON to the target URL.

    Args:
        client:  Shared AsyncClient; one is created (and owned) when omitted.
        headers: Optional extra headers (e.g. Authorization).
        timeout: HTTP request timeout in seconds. Defaults to 10.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def channel_name(self) -> str:
        return "webhook"

    async def send(self, target: str, notification: ChangeNotification) -> bool:
        """POST *notification* to *target*.

        Returns True on 2xx response, False otherwise.
        """
        if not target:
            _log.warning("webhook_target_empty", workload=notification.workload)
            return False

        payload = {"content": _truncate(notification.message())}
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }

        try:
            response = await self._client.post(
                target,
                json=payload,
                headers=request_headers,
                timeout=self._timeout,
            )
            if response.is_success:
                return True
            _log.warning(
                "webhook_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
                workload=notification.workload,
            )
            return False
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", workload=notification.workload)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc), workload=notification.workload)
            return False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _truncate(text: str) -> str:
    if len(text) <= _MAX_CONTENT:
        return text
    return text[: _MAX_CONTENT - 3] + "..."
