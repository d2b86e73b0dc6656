"""Live delivery status updates."""

from abc import ABC, abstractmethod

import redis.asyncio as redis

from vango_dispatch.models.notification import DeliveryEvent


class RealtimePublisher(ABC):
    """Output port called on every delivery transition."""

    @abstractmethod
    async def publish(self, event: DeliveryEvent) -> None:
        """Push a status change to subscribers of the delivery."""


class InMemoryRealtimePublisher(RealtimePublisher):
    def __init__(self) -> None:
        self.events: list[DeliveryEvent] = []

    async def publish(self, event: DeliveryEvent) -> None:
        self.events.append(event)

    def statuses(self, delivery_id: str) -> list[str]:
        """Statuses published for one delivery, in order."""
        return [event.status for event in self.events if event.delivery_id == delivery_id]


class RedisRealtimePublisher(RealtimePublisher):
    """Publishes on ``delivery:<id>`` so websocket relays can subscribe per delivery."""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def publish(self, event: DeliveryEvent) -> None:
        await self.client.publish(f"delivery:{event.delivery_id}", event.model_dump_json())
