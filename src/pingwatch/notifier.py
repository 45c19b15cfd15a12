"""
Notification dispatch on check status transitions.

Delivery is best effort and at most once: no response validation, no
retries. Nothing raised here ever reaches the caller.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from pingwatch.config import get_settings
from pingwatch.errors import NotificationDeliveryError
from pingwatch.mailer import Mailer
from pingwatch.models.integration import Integration
from pingwatch.repository import CheckRepository, IntegrationStore

logger = logging.getLogger("pingwatch.notifier")
settings = get_settings()


def ping_url(check_id: str) -> str:
    return f"{settings.base_url.rstrip('/')}/ping/{check_id}"


def build_payload(check_id: str, check_name: str, status: str, integration: Integration) -> dict:
    return {
        "check": {
            "id": check_id,
            "name": check_name,
            "status": status,
            "url": ping_url(check_id),
        },
        "integration": {
            "id": integration.id,
            "name": integration.name,
            "type": integration.type,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class NotificationDispatcher:
    def __init__(
        self,
        integrations: IntegrationStore,
        repository: CheckRepository,
        mailer: Optional[Mailer] = None,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        self.integrations = integrations
        self.repository = repository
        self.mailer = mailer or Mailer()
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(timeout=httpx.Timeout(settings.webhook_timeout))
        )

    async def notify(self, check_id: str, status: str) -> None:
        """Fire every enabled integration of the check that listens for ``status``."""
        status = getattr(status, "value", status)
        try:
            check = await self.repository.get(check_id)
            if check is None:
                logger.warning(f"Skipping notification for unknown check {check_id}")
                return

            integrations = await self.integrations.list_enabled_for_check(check_id)
            targets = [i for i in integrations if status in (i.notify_on or [])]
            if not targets:
                return

            await asyncio.gather(
                *(
                    self._deliver(integration, build_payload(check.id, check.name, status, integration))
                    for integration in targets
                )
            )
        except Exception as e:
            logger.error(f"Notification for check {check_id} ({status}) failed: {e}")

    async def _deliver(self, integration: Integration, payload: dict) -> None:
        try:
            if integration.type == "webhook":
                await self._send_webhook(integration, payload)
            elif integration.type == "email":
                await self._send_email(integration, payload)
            else:
                logger.warning(
                    f"Integration {integration.id} has unsupported type '{integration.type}'"
                )
        except Exception as e:
            error = NotificationDeliveryError(integration.id, integration.type, e)
            logger.error(str(error))

    async def _send_webhook(self, integration: Integration, payload: dict) -> None:
        url = (integration.config or {}).get("url")
        if not url:
            logger.warning(f"Webhook integration {integration.id} has no URL")
            return

        async with self._http_client_factory() as client:
            await client.post(url, json=payload)
        logger.info(
            f"Triggered webhook '{integration.name}' for status "
            f"'{payload['check']['status']}' of check {payload['check']['id']}"
        )

    async def _send_email(self, integration: Integration, payload: dict) -> None:
        recipient = (integration.config or {}).get("email")
        if not recipient:
            logger.warning(f"Email integration {integration.id} has no recipient")
            return
        await self.mailer.send(recipient, payload)
