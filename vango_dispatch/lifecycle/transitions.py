"""Delivery status state machine."""

from vango_dispatch.errors import IllegalTransition
from vango_dispatch.models.delivery import DeliveryAction, DeliveryStatus


class DeliveryTransitions:
    """Valid delivery status transitions."""

    TRANSITIONS: dict[DeliveryStatus, dict[DeliveryAction, DeliveryStatus]] = {
        DeliveryStatus.PENDING: {
            DeliveryAction.ACCEPT: DeliveryStatus.ACCEPTED,
            DeliveryAction.CANCEL: DeliveryStatus.CANCELLED,
        },
        DeliveryStatus.ACCEPTED: {
            DeliveryAction.PICKUP: DeliveryStatus.PICKED_UP,
            DeliveryAction.CANCEL: DeliveryStatus.CANCELLED,
        },
        DeliveryStatus.PICKED_UP: {
            DeliveryAction.TRANSIT: DeliveryStatus.IN_TRANSIT,
        },
        DeliveryStatus.IN_TRANSIT: {
            DeliveryAction.DELIVER: DeliveryStatus.DELIVERED,
        },
        DeliveryStatus.DELIVERED: {
            DeliveryAction.RATE: DeliveryStatus.RATED,
        },
        DeliveryStatus.RATED: {},
        DeliveryStatus.CANCELLED: {},
    }

    @classmethod
    def can_transition(cls, from_state: DeliveryStatus, action: DeliveryAction) -> bool:
        """Check if an action is valid from a state."""
        return action in cls.TRANSITIONS.get(from_state, {})

    @classmethod
    def next_state(cls, from_state: DeliveryStatus, action: DeliveryAction) -> DeliveryStatus:
        """Resolve the state an action leads to, or raise IllegalTransition."""
        if not cls.can_transition(from_state, action):
            raise IllegalTransition(from_state.value, action.value)
        return cls.TRANSITIONS[from_state][action]

