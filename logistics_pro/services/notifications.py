"""
Customer notifications for status changes

Delivery is fire-and-forget: the dispatcher schedules a background task and
returns at once. A failing or slow push gateway can never fail or delay a
status update; errors are logged and dropped.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

import httpx
from sqlalchemy import select

from logistics_pro.core.database import Database
from logistics_pro.models.user import User

logger = logging.getLogger(__name__)

STATUS_TITLES = {
    "received": "Shipment received",
    "in_transit": "Shipment in transit",
    "out_for_delivery": "Out for delivery",
    "delivered": "Shipment delivered",
    "cancelled": "Shipment cancelled",
    "returned": "Shipment returned",
}


@dataclass
class StatusNotification:
    """A status change addressed to the shipment's customer."""
    shipment_id: int
    tracking_number: str
    status: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    @property
    def title(self) -> str:
        return STATUS_TITLES.get(self.status, "Shipment update")

    @property
    def body(self) -> str:
        text = f"{self.tracking_number}: {self.status.replace('_', ' ')}"
        if self.location:
            text += f" at {self.location}"
        return text


class NotificationSink:
    """Something that can deliver a StatusNotification."""

    async def send(self, notification: StatusNotification) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LoggingSink(NotificationSink):
    """Used when no push gateway is configured."""

    async def send(self, notification: StatusNotification) -> None:
        logger.info(
            f"[notification] {notification.customer_phone}: "
            f"{notification.title} - {notification.body}"
        )


class PushGatewaySink(NotificationSink):
    """
    POSTs notifications to an HTTP push gateway.

    The customer's device token is looked up from the users table by phone
    number; without one the gateway gets the phone number to fall back on SMS.
    """

    def __init__(
        self,
        url: str,
        database: Optional[Database] = None,
        api_key: str = "",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.database = database
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _device_token(self, phone: str) -> Optional[str]:
        if self.database is None:
            return None
        async with self.database.session() as db:
            result = await db.execute(
                select(User.fcm_token).where(User.phone == phone, User.is_active.is_(True))
            )
            return result.scalar_one_or_none()

    async def send(self, notification: StatusNotification) -> None:
        token = await self._device_token(notification.customer_phone)

        payload = {
            "to": token or notification.customer_phone,
            "channel": "push" if token else "sms",
            "title": notification.title,
            "body": notification.body,
            "data": {
                "shipment_id": notification.shipment_id,
                "tracking_number": notification.tracking_number,
                "status": notification.status,
                "location": notification.location,
            },
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        response = await self._client.post(self.url, json=payload, headers=headers)
        response.raise_for_status()
        logger.info(
            f"Push sent for shipment {notification.shipment_id} "
            f"({notification.status}) via {payload['channel']}"
        )

    async def close(self) -> None:
        await self._client.aclose()


class NotificationDispatcher:
    """Schedules sink deliveries as background tasks."""

    def __init__(self, sink: NotificationSink):
        self.sink = sink
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, notification: StatusNotification) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(notification))
        except RuntimeError:
            logger.warning(
                f"No running event loop; dropping notification for shipment {notification.shipment_id}"
            )
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, notification: StatusNotification) -> None:
        try:
            await self.sink.send(notification)
        except Exception as e:
            logger.warning(
                f"Notification for shipment {notification.shipment_id} failed: "
                f"{type(e).__name__}: {e}"
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self.sink.close()


def build_dispatcher(settings, database: Optional[Database] = None) -> NotificationDispatcher:
    if settings.PUSH_GATEWAY_URL:
        sink = PushGatewaySink(
            settings.PUSH_GATEWAY_URL,
            database=database,
            api_key=settings.PUSH_GATEWAY_API_KEY,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )
    else:
        logger.info("PUSH_GATEWAY_URL not set, notifications will be logged only")
        sink = LoggingSink()
    return NotificationDispatcher(sink)
