"""Payout models."""

from decimal import Decimal

from pydantic import AwareDatetime, BaseModel, Field

from vango_dispatch.clock import utc_now


class PayoutSplit(BaseModel):
    """Division of a fee between the driver and the platform."""

    driver_payout: Decimal
    platform_fee: Decimal

    @property
    def total(self) -> Decimal:
        return self.driver_payout + self.platform_fee


class PayoutRecord(BaseModel):
    """Driver earnings for one completed delivery, handed to billing."""

    delivery_id: str
    driver_id: str
    amount: Decimal
    platform_fee: Decimal
    currency: str = "ZAR"
    created_at: AwareDatetime = Field(default_factory=utc_now)
