"""
Event notifications (media released, download started/completed).

Delivery runs as a detached task scheduled after the state change has been
committed, so a slow or failing endpoint never blocks or rolls back the monitor.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import aiohttp

from nastools.utils.network import create_aiohttp_session

logger = logging.getLogger(__name__)

DELIVERY_TIMEOUT_SECONDS = 10

MEDIA_RELEASED = "media_released"
DOWNLOAD_STARTED = "download_started"
DOWNLOAD_COMPLETED = "download_completed"


def subscription_payload(subscription) -> Dict[str, Any]:
    return {
        "id": subscription.id,
        "title": subscription.title,
        "media_type": subscription.media_type,
        "source": subscription.source,
        "source_id": subscription.source_id,
        "season_number": subscription.season_number,
    }


class Notifier:
    """Base notifier: schedules deliveries, subclasses implement deliver()"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def emit(self, event_type: str, subscription, data: Optional[Dict[str, Any]] = None) -> Optional[asyncio.Task]:
        event = {
            "type": event_type,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "subscription": subscription_payload(subscription),
            "data": data or {},
        }
        try:
            task = asyncio.get_running_loop().create_task(self._deliver_safely(event))
        except RuntimeError:
            logger.warning(f"No running event loop, dropping {event_type} notification")
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver_safely(self, event: Dict[str, Any]):
        try:
            await self.deliver(event)
        except Exception as e:
            logger.error(
                f"Notification {event['type']} for {event['subscription']['title']} failed: {e}",
                exc_info=True
            )

    async def deliver(self, event: Dict[str, Any]):
        logger.debug(f"Notification {event['type']}: {event['subscription']['title']} {event['data']}")

    async def drain(self):
        """Wait for outstanding deliveries (shutdown)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class WebhookNotifier(Notifier):
    """POSTs each event as JSON to a webhook URL"""

    def __init__(self, url: str, timeout: float = DELIVERY_TIMEOUT_SECONDS):
        super().__init__()
        self.url = url
        self.timeout = timeout

    async def deliver(self, event: Dict[str, Any]):
        async with create_aiohttp_session() as session:
            async with session.post(
                self.url,
                json=event,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise RuntimeError(f"Webhook returned HTTP {resp.status}: {body[:200]}")
        logger.info(f"✓ Notification {event['type']} delivered for {event['subscription']['title']}")
