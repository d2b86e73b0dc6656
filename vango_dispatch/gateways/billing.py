"""Hand-off of driver payouts to billing."""

from abc import ABC, abstractmethod

import redis.asyncio as redis

from vango_dispatch.models.payout import PayoutRecord
from vango_dispatch.utils.logging import get_logger

logger = get_logger(__name__)

PAYOUT_QUEUE_KEY = "payouts:pending"


class BillingSink(ABC):
    """Receives one payout record per completed delivery."""

    @abstractmethod
    async def submit(self, record: PayoutRecord) -> None:
        """Queue a payout for execution by the payment provider."""


class InMemoryBillingSink(BillingSink):
    def __init__(self) -> None:
        self.records: list[PayoutRecord] = []

    async def submit(self, record: PayoutRecord) -> None:
        self.records.append(record)


class RedisBillingSink(BillingSink):
    """Appends payouts to a Redis list drained by the payout worker."""

    def __init__(self, client: redis.Redis, queue_key: str = PAYOUT_QUEUE_KEY):
        self.client = client
        self.queue_key = queue_key

    async def submit(self, record: PayoutRecord) -> None:
        await self.client.rpush(self.queue_key, record.model_dump_json())
        logger.info(
            "payout_queued",
            delivery_id=record.delivery_id,
            driver_id=record.driver_id,
            amount=str(record.amount),
        )
