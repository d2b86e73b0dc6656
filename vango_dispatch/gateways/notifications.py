"""Hand-off of notification intents to the delivery channels."""

from abc import ABC, abstractmethod

import redis.asyncio as redis

from vango_dispatch.models.notification import NotificationIntent
from vango_dispatch.utils.logging import get_logger

logger = get_logger(__name__)

NOTIFICATIONS_CHANNEL = "notifications"


class NotificationGateway(ABC):
    """Accepts notification intents; channel delivery happens elsewhere."""

    @abstractmethod
    async def send(self, intent: NotificationIntent) -> None:
        """Queue one notification for delivery."""


class InMemoryNotificationGateway(NotificationGateway):
    """Keeps sent intents in a list."""

    def __init__(self) -> None:
        self.sent: list[NotificationIntent] = []

    async def send(self, intent: NotificationIntent) -> None:
        self.sent.append(intent)

    def for_user(self, user_id: str) -> list[NotificationIntent]:
        return [intent for intent in self.sent if intent.user_id == user_id]


class RedisNotificationGateway(NotificationGateway):
    """Publishes intents on a Redis channel consumed by the push/WhatsApp workers."""

    def __init__(self, client: redis.Redis, channel: str = NOTIFICATIONS_CHANNEL):
        self.client = client
        self.channel = channel

    async def send(self, intent: NotificationIntent) -> None:
        await self.client.publish(self.channel, intent.model_dump_json())
        logger.debug(
            "notification_published",
            channel=self.channel,
            user_id=intent.user_id,
            category=intent.category.value,
        )
