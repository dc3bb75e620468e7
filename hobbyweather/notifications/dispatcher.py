"""
Tool: Notification Dispatcher
Purpose: Deliver a notification payload to the user

Dispatchers expose a permission state and a single async send primitive
that reports success as a bool. Transport failures are logged and
reported as False, never raised.

Implementations:
    LogDispatcher: writes notifications to the structured log
    WebhookDispatcher: POSTs the payload as JSON to a configured URL

Usage:
    dispatcher = WebhookDispatcher("https://example.test/hook")
    await dispatcher.request_permission()
    ok = await dispatcher.send(payload)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from hobbyweather.logging_config import get_logger
from hobbyweather.notifications.models import NotificationPayload, PermissionState

logger = get_logger(__name__)


class NotificationDispatcher(ABC):
    """User-facing delivery channel."""

    def __init__(self) -> None:
        self._permission = PermissionState.DEFAULT

    @abstractmethod
    def is_supported(self) -> bool: ...

    def get_permission_state(self) -> PermissionState:
        if not self.is_supported():
            return PermissionState.DENIED
        return self._permission

    async def request_permission(self) -> PermissionState:
        """Ask for permission to deliver. Unsupported channels are denied."""
        if not self.is_supported():
            self._permission = PermissionState.DENIED
        elif self._permission == PermissionState.DEFAULT:
            self._permission = PermissionState.GRANTED
        logger.info("dispatcher_permission", dispatcher=type(self).__name__, state=self._permission.value)
        return self._permission

    async def send(self, payload: NotificationPayload) -> bool:
        if not self.is_supported():
            logger.warning("dispatcher_unsupported", dispatcher=type(self).__name__)
            return False
        if self.get_permission_state() != PermissionState.GRANTED:
            logger.warning(
                "dispatcher_permission_missing",
                dispatcher=type(self).__name__,
                state=self.get_permission_state().value,
            )
            return False
        return await self._deliver(payload)

    @abstractmethod
    async def _deliver(self, payload: NotificationPayload) -> bool: ...

    async def close(self) -> None:
        """Release transport resources."""


class LogDispatcher(NotificationDispatcher):
    """Delivers notifications to the log."""

    def is_supported(self) -> bool:
        return True

    async def _deliver(self, payload: NotificationPayload) -> bool:
        logger.info(
            "notification",
            type=payload.type.value,
            title=payload.title,
            message=payload.message,
            icon=payload.icon,
            require_interaction=payload.require_interaction,
        )
        return True


class WebhookDispatcher(NotificationDispatcher):
    """POSTs notifications as JSON."""

    def __init__(
        self,
        url: str | None,
        timeout_seconds: float = 10.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.headers = headers or {}
        self._httpx_client = client

    def is_supported(self) -> bool:
        return bool(self.url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._httpx_client is None:
            self._httpx_client = httpx.AsyncClient(headers=self.headers, timeout=self.timeout_seconds)
        return self._httpx_client

    async def _deliver(self, payload: NotificationPayload) -> bool:
        body: dict[str, Any] = payload.to_dict()
        client = await self._get_client()
        try:
            response = await client.post(self.url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("webhook_send_failed", url=self.url, error=str(e))
            return False
        return True

    async def close(self) -> None:
        if self._httpx_client is not None:
            await self._httpx_client.aclose()
            self._httpx_client = None


def build_dispatcher(dispatcher_config: Any) -> NotificationDispatcher:
    """Dispatcher for a DispatcherConfig section."""
    if dispatcher_config.kind == "webhook":
        return WebhookDispatcher(dispatcher_config.webhook_url, timeout_seconds=dispatcher_config.timeout_seconds)
    return LogDispatcher()
