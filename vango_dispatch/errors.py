"""Typed failures raised by the dispatch core."""


class DispatchError(Exception):
    """Base class for all dispatch core errors."""


class RequestValidationError(DispatchError, ValueError):
    """Matching criteria, a delivery request or a rating is malformed."""


class DeliveryNotFound(DispatchError):
    """No delivery exists with the given id."""

    def __init__(self, delivery_id: str):
        super().__init__(f"Delivery {delivery_id} not found")
        self.delivery_id = delivery_id


class DriverNotFound(DispatchError):
    """No driver exists with the given id."""

    def __init__(self, driver_id: str):
        super().__init__(f"Driver {driver_id} not found")
        self.driver_id = driver_id


class IllegalTransition(DispatchError):
    """The requested action is not allowed from the delivery's current status."""

    def __init__(self, current: str, attempted: str):
        super().__init__(f"Cannot {attempted} a delivery that is {current}")
        self.current = current
        self.attempted = attempted


class DeliveryAlreadyAssigned(IllegalTransition):
    """Another driver claimed the delivery first."""

    def __init__(self, delivery_id: str, current: str = "accepted"):
        super().__init__(current, "accept")
        self.args = (f"Delivery {delivery_id} is no longer available",)
        self.delivery_id = delivery_id


class ActorNotPermitted(DispatchError):
    """The caller is not the party allowed to perform the action."""

    def __init__(self, actor_id: str | None, action: str):
        super().__init__(f"Actor {actor_id} may not {action} this delivery")
        self.actor_id = actor_id
        self.action = action


class DriverUnavailable(DispatchError):
    """The driver cannot take new work right now."""

    def __init__(self, driver_id: str, reason: str):
        super().__init__(f"Driver {driver_id} is unavailable: {reason}")
        self.driver_id = driver_id
        self.reason = reason


class StoreConflictError(DispatchError):
    """A record kept changing underneath a conditional update."""


class PayoutComputationError(DispatchError):
    """The payout for a delivery cannot be computed and needs manual reconciliation."""
