"""Delivery lifecycle: state machine, pricing and payouts."""

from vango_dispatch.lifecycle.manager import DeliveryLifecycle
from vango_dispatch.lifecycle.payout import PayoutCalculator
from vango_dispatch.lifecycle.pricing import estimated_arrival, quote_fee
from vango_dispatch.lifecycle.transitions import DeliveryTransitions

__all__ = [
    "DeliveryLifecycle",
    "DeliveryTransitions",
    "PayoutCalculator",
    "estimated_arrival",
    "quote_fee",
]
