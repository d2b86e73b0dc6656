"""Split of a delivery fee between driver and platform."""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from vango_dispatch.clock import Clock, utc_now
from vango_dispatch.errors import PayoutComputationError
from vango_dispatch.models.delivery import Delivery
from vango_dispatch.models.payout import PayoutRecord, PayoutSplit

CENT = Decimal("0.01")


class PayoutCalculator:
    """
    Computes driver earnings for completed deliveries.

    The driver share is rounded to the cent with banker's rounding and the
    platform fee is the remainder, so the two always add up to the fee.
    """

    def __init__(
        self,
        driver_share: Decimal = Decimal("0.6"),
        currency: str = "ZAR",
        clock: Clock = utc_now,
    ):
        if not Decimal(0) < driver_share < Decimal(1):
            raise ValueError("driver_share must be between 0 and 1")
        self.driver_share = driver_share
        self.currency = currency
        self.clock = clock

    def split(self, fee: Decimal | int | str) -> PayoutSplit:
        """
        Split a fee.

        Args:
            fee: Delivery fee in rands

        Returns:
            PayoutSplit whose parts sum exactly to ``fee``

        Raises:
            PayoutComputationError: If the fee is negative or not a finite number
        """
        try:
            amount = Decimal(str(fee)) if not isinstance(fee, Decimal) else fee
        except InvalidOperation:
            raise PayoutComputationError(f"Fee {fee!r} is not a number") from None

        if not amount.is_finite():
            raise PayoutComputationError(f"Fee {fee!r} is not a finite amount")
        if amount < 0:
            raise PayoutComputationError(f"Fee {amount} is negative")

        driver_payout = (amount * self.driver_share).quantize(CENT, rounding=ROUND_HALF_EVEN)
        return PayoutSplit(driver_payout=driver_payout, platform_fee=amount - driver_payout)

    def payout_for(self, delivery: Delivery) -> PayoutRecord:
        """Build the payout record owed for a delivery."""
        if delivery.driver_id is None:
            raise PayoutComputationError(f"Delivery {delivery.id} has no assigned driver")
        if delivery.delivery_fee <= 0:
            raise PayoutComputationError(
                f"Delivery {delivery.id} has a non-positive fee ({delivery.delivery_fee})"
            )

        split = self.split(delivery.delivery_fee)
        return PayoutRecord(
            delivery_id=delivery.id,
            driver_id=delivery.driver_id,
            amount=split.driver_payout,
            platform_fee=split.platform_fee,
            currency=self.currency,
            created_at=self.clock(),
        )
