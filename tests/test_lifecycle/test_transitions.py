"""Tests for the delivery status state machine."""

import pytest

from vango_dispatch.errors import IllegalTransition
from vango_dispatch.lifecycle.transitions import DeliveryTransitions
from vango_dispatch.models.delivery import DeliveryAction, DeliveryStatus

LEGAL = [
    (DeliveryStatus.PENDING, DeliveryAction.ACCEPT, DeliveryStatus.ACCEPTED),
    (DeliveryStatus.PENDING, DeliveryAction.CANCEL, DeliveryStatus.CANCELLED),
    (DeliveryStatus.ACCEPTED, DeliveryAction.PICKUP, DeliveryStatus.PICKED_UP),
    (DeliveryStatus.ACCEPTED, DeliveryAction.CANCEL, DeliveryStatus.CANCELLED),
    (DeliveryStatus.PICKED_UP, DeliveryAction.TRANSIT, DeliveryStatus.IN_TRANSIT),
    (DeliveryStatus.IN_TRANSIT, DeliveryAction.DELIVER, DeliveryStatus.DELIVERED),
    (DeliveryStatus.DELIVERED, DeliveryAction.RATE, DeliveryStatus.RATED),
]


@pytest.mark.parametrize("from_state,action,to_state", LEGAL)
def test_legal_transitions(
    from_state: DeliveryStatus, action: DeliveryAction, to_state: DeliveryStatus
) -> None:
    """Test every edge of the state machine."""
    assert DeliveryTransitions.can_transition(from_state, action)
    assert DeliveryTransitions.next_state(from_state, action) == to_state


def test_everything_else_is_illegal() -> None:
    """Test that no (status, action) pair outside the table is accepted."""
    legal_pairs = {(from_state, action) for from_state, action, _ in LEGAL}

    for status in DeliveryStatus:
        for action in DeliveryAction:
            if (status, action) in legal_pairs:
                continue
            assert not DeliveryTransitions.can_transition(status, action)
            with pytest.raises(IllegalTransition):
                DeliveryTransitions.next_state(status, action)


def test_illegal_transition_carries_states() -> None:
    """Test that the error names the current status and attempted action."""
    with pytest.raises(IllegalTransition) as exc_info:
        DeliveryTransitions.next_state(DeliveryStatus.IN_TRANSIT, DeliveryAction.CANCEL)

    assert exc_info.value.current == "in_transit"
    assert exc_info.value.attempted == "cancel"
