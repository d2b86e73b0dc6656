"""Outbound ports to notification, realtime and billing systems."""

from vango_dispatch.gateways.billing import BillingSink, InMemoryBillingSink, RedisBillingSink
from vango_dispatch.gateways.notifications import (
    InMemoryNotificationGateway,
    NotificationGateway,
    RedisNotificationGateway,
)
from vango_dispatch.gateways.realtime import (
    InMemoryRealtimePublisher,
    RealtimePublisher,
    RedisRealtimePublisher,
)

__all__ = [
    "BillingSink",
    "InMemoryBillingSink",
    "RedisBillingSink",
    "NotificationGateway",
    "InMemoryNotificationGateway",
    "RedisNotificationGateway",
    "RealtimePublisher",
    "InMemoryRealtimePublisher",
    "RedisRealtimePublisher",
]
