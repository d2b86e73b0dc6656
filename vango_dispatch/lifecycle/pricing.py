"""Delivery fee quotes."""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from vango_dispatch.models.delivery import ItemSize, ItemWeight

BASE_FEE = Decimal("50")
FEE_PER_KM = Decimal("8")

SIZE_MULTIPLIERS = {
    ItemSize.SMALL: Decimal("1.0"),
    ItemSize.MEDIUM: Decimal("1.3"),
    ItemSize.LARGE: Decimal("1.6"),
}

WEIGHT_MULTIPLIERS = {
    ItemWeight.LIGHT: Decimal("1.0"),
    ItemWeight.MEDIUM: Decimal("1.2"),
    ItemWeight.HEAVY: Decimal("1.5"),
}


def quote_fee(distance_km: float, item_size: ItemSize, item_weight: ItemWeight) -> Decimal:
    """Fee in whole rands for a trip of ``distance_km`` carrying the given load."""
    raw = (BASE_FEE + FEE_PER_KM * Decimal(str(distance_km))) * SIZE_MULTIPLIERS[
        item_size
    ] * WEIGHT_MULTIPLIERS[item_weight]
    return raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP).quantize(Decimal("0.01"))


def estimated_arrival(
    distance_km: float,
    now: datetime,
    average_speed_kmh: float = 40.0,
) -> datetime:
    """Expected arrival time at the destination if the trip started now."""
    return now + timedelta(hours=distance_km / average_speed_kmh)
