"""Delivery lifecycle - status transitions and their side effects."""

from statistics import fmean
from typing import Any, Literal

from vango_dispatch.clock import Clock, utc_now
from vango_dispatch.errors import (
    ActorNotPermitted,
    DeliveryAlreadyAssigned,
    DeliveryNotFound,
    DriverNotFound,
    DriverUnavailable,
    IllegalTransition,
    PayoutComputationError,
    RequestValidationError,
)
from vango_dispatch.gateways.billing import BillingSink
from vango_dispatch.gateways.notifications import NotificationGateway
from vango_dispatch.gateways.realtime import RealtimePublisher
from vango_dispatch.lifecycle.payout import PayoutCalculator
from vango_dispatch.lifecycle.pricing import estimated_arrival, quote_fee
from vango_dispatch.lifecycle.transitions import DeliveryTransitions
from vango_dispatch.matching.engine import MatchingEngine
from vango_dispatch.matching.geo import distance_km
from vango_dispatch.models.delivery import (
    Delivery,
    DeliveryAction,
    DeliveryRequest,
    DeliveryStatus,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    TransitionResult,
)
from vango_dispatch.models.driver import DriverFilter, DriverJobUpdate, DriverStatus
from vango_dispatch.models.notification import (
    DeliveryEvent,
    NotificationCategory,
    NotificationIntent,
)
from vango_dispatch.models.payout import PayoutRecord
from vango_dispatch.state.store import Store
from vango_dispatch.utils.logging import LifecycleLogger

DispatchStrategy = Literal["targeted", "broadcast"]

# Concurrent cancel/accept can move a delivery between legal cancel states
MAX_CANCEL_ATTEMPTS = 3


class DeliveryLifecycle:
    """
    Drives deliveries through their status state machine.

    Every status write is a conditional update against the status that was
    checked, so two callers can never both apply a transition. Driver job
    counters change in the same store write as the status. Notifications and
    realtime events are best-effort and never undo a transition.
    """

    def __init__(
        self,
        store: Store,
        matching: MatchingEngine,
        notifications: NotificationGateway,
        realtime: RealtimePublisher,
        billing: BillingSink,
        payout_calculator: PayoutCalculator,
        clock: Clock = utc_now,
        dispatch_strategy: DispatchStrategy = "targeted",
        notify_top_n: int = 5,
    ):
        self.store = store
        self.matching = matching
        self.notifications = notifications
        self.realtime = realtime
        self.billing = billing
        self.payout_calculator = payout_calculator
        self.clock = clock
        self.dispatch_strategy = dispatch_strategy
        self.notify_top_n = notify_top_n
        self.logger = LifecycleLogger("delivery_lifecycle")

    # Creation

    async def create(self, request: DeliveryRequest) -> Delivery:
        """
        Create a pending delivery and offer it to drivers.

        Args:
            request: Validated customer request

        Returns:
            The stored delivery
        """
        distance = distance_km(request.pickup_location, request.delivery_location)
        now = self.clock()

        delivery = Delivery(
            customer_id=request.customer_id,
            pickup_address=request.pickup_address,
            delivery_address=request.delivery_address,
            pickup_location=request.pickup_location,
            delivery_location=request.delivery_location,
            distance_km=round(distance, 3),
            item_description=request.item_description,
            item_size=request.item_size,
            item_weight=request.item_weight,
            material_type=request.material_type,
            weight_kg=request.weight_kg,
            urgency=request.urgency,
            delivery_fee=quote_fee(distance, request.item_size, request.item_weight),
            payment_method=request.payment_method,
            payment_status=(
                PaymentStatus.PROCESSING
                if request.payment_method == PaymentMethod.PAYPAL
                else PaymentStatus.PENDING
            ),
            created_at=now,
            updated_at=now,
            estimated_arrival=estimated_arrival(distance, now),
        )
        delivery.offered_driver_ids = await self._select_offer_recipients(request)

        await self.store.create_delivery(delivery)

        self.logger.log_transition(
            delivery_id=delivery.id,
            action="create",
            from_status="none",
            to_status=delivery.status.value,
            actor_id=request.customer_id,
            fee=str(delivery.delivery_fee),
            offered=len(delivery.offered_driver_ids),
        )

        for driver_id in delivery.offered_driver_ids:
            await self.notify(
                NotificationIntent(
                    user_id=driver_id,
                    title="New Delivery Request",
                    message=(
                        f"{delivery.item_description} - R{delivery.delivery_fee:.2f} "
                        f"({delivery.distance_km:.1f}km)"
                    ),
                    category=NotificationCategory.DELIVERY_REQUEST,
                    metadata={"delivery_id": delivery.id},
                )
            )

        await self.notify(
            NotificationIntent(
                user_id=delivery.customer_id,
                title="Delivery Request Created",
                message=(
                    "Your delivery request has been created. "
                    "We're finding the best driver for you."
                ),
                category=NotificationCategory.DELIVERY_REQUEST,
                metadata={"delivery_id": delivery.id},
            )
        )
        await self._publish(delivery, previous_status=None)

        return delivery

    async def _select_offer_recipients(self, request: DeliveryRequest) -> list[str]:
        pool = await self.store.get_drivers(DriverFilter(status=DriverStatus.AVAILABLE))

        if self.dispatch_strategy == "broadcast":
            return sorted(driver.id for driver in pool)

        matches = self.matching.find_best_matches(
            pool, request.to_criteria(), limit=self.notify_top_n
        )
        return [match.driver_id for match in matches]

    # Driver actions

    async def accept(self, delivery_id: str, driver_id: str) -> TransitionResult:
        """
        Claim a pending delivery for a driver. First caller wins.

        Raises:
            DeliveryAlreadyAssigned: Another driver holds the delivery
            IllegalTransition: The delivery is finished or cancelled
            DriverUnavailable: The driver is not available for work
        """
        delivery = await self.load(delivery_id)

        if delivery.is_active:
            self.logger.log_rejected(delivery_id, "accept", "already_assigned", driver_id=driver_id)
            raise DeliveryAlreadyAssigned(delivery_id, delivery.status.value)
        new_status = self._resolve(delivery, DeliveryAction.ACCEPT)

        driver = await self.store.get_driver(driver_id)
        if driver is None:
            raise DriverNotFound(driver_id)
        if driver.status != DriverStatus.AVAILABLE:
            raise DriverUnavailable(driver_id, f"status is {driver.status.value}")
        if not driver.is_verified:
            raise DriverUnavailable(driver_id, "not verified")

        now = self.clock()
        claimed = await self.store.conditional_update_delivery_status(
            delivery_id,
            expected_status=DeliveryStatus.PENDING,
            new_status=new_status,
            patch={"driver_id": driver_id, "accepted_at": now, "updated_at": now},
            driver_update=DriverJobUpdate(driver_id=driver_id, jobs_delta=1),
        )
        if not claimed:
            current = await self.load(delivery_id)
            self.logger.logger.info(
                "acceptance_race_lost",
                delivery_id=delivery_id,
                driver_id=driver_id,
                winner=current.driver_id,
            )
            if current.is_active:
                raise DeliveryAlreadyAssigned(delivery_id, current.status.value)
            raise IllegalTransition(current.status.value, DeliveryAction.ACCEPT.value)

        updated = await self.load(delivery_id)
        self.logger.log_transition(
            delivery_id, "accept", delivery.status.value, new_status.value, driver_id
        )

        await self.notify(
            NotificationIntent(
                user_id=updated.customer_id,
                title="Driver Assigned",
                message="A driver has accepted your delivery request and is on the way!",
                category=NotificationCategory.DELIVERY_ACCEPTED,
                metadata={"delivery_id": delivery_id, "driver_id": driver_id},
            )
        )
        await self._publish(updated, previous_status=delivery.status)

        return TransitionResult(
            delivery=updated, action=DeliveryAction.ACCEPT, previous_status=delivery.status
        )

    async def pickup(self, delivery_id: str, driver_id: str) -> TransitionResult:
        """Mark the load as collected."""
        return await self._driver_progress(
            delivery_id,
            driver_id,
            DeliveryAction.PICKUP,
            extra_patch={"picked_up_at": self.clock()},
            notification=("Package Picked Up", "Your package has been picked up and is on the way"),
        )

    async def transit(self, delivery_id: str, driver_id: str) -> TransitionResult:
        """Mark the load as on the road to the customer."""
        return await self._driver_progress(
            delivery_id,
            driver_id,
            DeliveryAction.TRANSIT,
            notification=("Delivery In Transit", "Your package is currently being delivered"),
        )

    async def _driver_progress(
        self,
        delivery_id: str,
        driver_id: str,
        action: DeliveryAction,
        extra_patch: dict[str, Any] | None = None,
        notification: tuple[str, str] | None = None,
    ) -> TransitionResult:
        delivery = await self.load(delivery_id)
        new_status = self._resolve(delivery, action)
        self._authorize_driver(delivery, driver_id, action)

        patch = {"updated_at": self.clock(), **(extra_patch or {})}
        await self._apply(delivery, action, new_status, patch)
        updated = await self.load(delivery_id)

        self.logger.log_transition(
            delivery_id, action.value, delivery.status.value, new_status.value, driver_id
        )

        if notification:
            title, message = notification
            await self.notify(
                NotificationIntent(
                    user_id=updated.customer_id,
                    title=title,
                    message=message,
                    category=NotificationCategory.DELIVERY_UPDATE,
                    metadata={"delivery_id": delivery_id, "status": new_status.value},
                )
            )
        await self._publish(updated, previous_status=delivery.status)

        return TransitionResult(delivery=updated, action=action, previous_status=delivery.status)

    async def deliver(self, delivery_id: str, driver_id: str) -> TransitionResult:
        """
        Complete a delivery and pay the driver.

        The payout is computed before the status changes. If it cannot be
        computed the delivery stays in transit, is flagged for
        reconciliation, and PayoutComputationError is raised.
        """
        delivery = await self.load(delivery_id)
        new_status = self._resolve(delivery, DeliveryAction.DELIVER)
        self._authorize_driver(delivery, driver_id, DeliveryAction.DELIVER)

        try:
            payout = self.payout_calculator.payout_for(delivery)
        except PayoutComputationError as e:
            self.logger.log_error(str(e), delivery_id=delivery_id, action="deliver")
            await self._flag_for_reconciliation(delivery)
            raise

        now = self.clock()
        await self._apply(
            delivery,
            DeliveryAction.DELIVER,
            new_status,
            patch={
                "delivered_at": now,
                "updated_at": now,
                "payout_status": PayoutStatus.ISSUED,
            },
            driver_update=DriverJobUpdate(
                driver_id=driver_id,
                jobs_delta=-1,
                completed_delta=1,
                last_delivery_time=now,
            ),
        )
        updated = await self.load(delivery_id)

        self.logger.log_transition(
            delivery_id,
            "deliver",
            delivery.status.value,
            new_status.value,
            driver_id,
            payout=str(payout.amount),
            platform_fee=str(payout.platform_fee),
        )

        await self._submit_payout(updated, payout)

        await self.notify(
            NotificationIntent(
                user_id=updated.customer_id,
                title="Delivery Completed",
                message="Your delivery has been completed successfully!",
                category=NotificationCategory.DELIVERY_COMPLETED,
                metadata={"delivery_id": delivery_id},
            )
        )
        await self.notify(
            NotificationIntent(
                user_id=driver_id,
                title="Payment Received",
                message=f"You earned R{payout.amount:.2f} for completing the delivery!",
                category=NotificationCategory.PAYMENT_RECEIVED,
                metadata={"delivery_id": delivery_id, "amount": str(payout.amount)},
            )
        )
        await self._publish(updated, previous_status=delivery.status)

        return TransitionResult(
            delivery=updated,
            action=DeliveryAction.DELIVER,
            previous_status=delivery.status,
            payout=payout,
        )

    async def _flag_for_reconciliation(self, delivery: Delivery) -> None:
        await self.store.conditional_update_delivery_status(
            delivery.id,
            expected_status=delivery.status,
            new_status=delivery.status,
            patch={
                "payout_status": PayoutStatus.REQUIRES_RECONCILIATION,
                "updated_at": self.clock(),
            },
        )

    async def _submit_payout(self, delivery: Delivery, payout: PayoutRecord) -> None:
        try:
            await self.billing.submit(payout)
        except Exception as e:
            # The delivery is already complete; billing must pick this up by hand
            self.logger.log_error(
                f"payout submission failed: {e}",
                delivery_id=delivery.id,
                amount=str(payout.amount),
            )
            await self._flag_for_reconciliation(delivery)

    # Customer actions

    async def rate(
        self,
        delivery_id: str,
        customer_id: str,
        rating: int,
        review: str | None = None,
    ) -> TransitionResult:
        """Record the customer's rating and refresh the driver's average."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise RequestValidationError("rating must be an integer from 1 to 5")

        delivery = await self.load(delivery_id)
        new_status = self._resolve(delivery, DeliveryAction.RATE)
        if customer_id != delivery.customer_id:
            raise ActorNotPermitted(customer_id, DeliveryAction.RATE.value)

        await self._apply(
            delivery,
            DeliveryAction.RATE,
            new_status,
            patch={"customer_rating": rating, "review": review, "updated_at": self.clock()},
        )
        updated = await self.load(delivery_id)

        ratings = await self.store.add_driver_rating(delivery.driver_id, rating)
        average = round(fmean(ratings), 2)
        await self.store.update_driver(delivery.driver_id, rating=average)

        self.logger.log_transition(
            delivery_id,
            "rate",
            delivery.status.value,
            new_status.value,
            customer_id,
            rating=rating,
            driver_rating=average,
        )

        await self.notify(
            NotificationIntent(
                user_id=delivery.driver_id,
                title="New Rating",
                message=f"A customer rated your delivery {rating}/5.",
                category=NotificationCategory.RATING_RECEIVED,
                metadata={"delivery_id": delivery_id, "rating": rating},
            )
        )
        await self._publish(updated, previous_status=delivery.status)

        return TransitionResult(
            delivery=updated, action=DeliveryAction.RATE, previous_status=delivery.status
        )

    async def cancel(
        self,
        delivery_id: str,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> TransitionResult:
        """
        Cancel a pending or accepted delivery.

        Args:
            delivery_id: Delivery to cancel
            actor_id: Customer cancelling, or None for a system cancellation
            reason: Optional free-text reason
        """
        for _ in range(MAX_CANCEL_ATTEMPTS):
            delivery = await self.load(delivery_id)
            new_status = self._resolve(delivery, DeliveryAction.CANCEL)
            if actor_id is not None and actor_id != delivery.customer_id:
                raise ActorNotPermitted(actor_id, DeliveryAction.CANCEL.value)

            now = self.clock()
            driver_update = None
            if delivery.status == DeliveryStatus.ACCEPTED and delivery.driver_id:
                driver_update = DriverJobUpdate(driver_id=delivery.driver_id, jobs_delta=-1)

            applied = await self.store.conditional_update_delivery_status(
                delivery_id,
                expected_status=delivery.status,
                new_status=new_status,
                patch={
                    "cancelled_at": now,
                    "updated_at": now,
                    "cancellation_reason": reason,
                },
                driver_update=driver_update,
            )
            if applied:
                break
        else:
            current = await self.load(delivery_id)
            raise IllegalTransition(current.status.value, DeliveryAction.CANCEL.value)

        updated = await self.load(delivery_id)
        self.logger.log_transition(
            delivery_id,
            "cancel",
            delivery.status.value,
            new_status.value,
            actor_id or "system",
            reason=reason,
        )

        recipients = [delivery.customer_id]
        if delivery.driver_id:
            recipients.append(delivery.driver_id)
        for user_id in recipients:
            await self.notify(
                NotificationIntent(
                    user_id=user_id,
                    title="Delivery Cancelled",
                    message="The delivery has been cancelled",
                    category=NotificationCategory.DELIVERY_CANCELLED,
                    metadata={"delivery_id": delivery_id, "reason": reason},
                )
            )
        await self._publish(updated, previous_status=delivery.status)

        return TransitionResult(
            delivery=updated, action=DeliveryAction.CANCEL, previous_status=delivery.status
        )

    # Helpers

    async def load(self, delivery_id: str) -> Delivery:
        delivery = await self.store.get_delivery(delivery_id)
        if delivery is None:
            raise DeliveryNotFound(delivery_id)
        return delivery

    def _resolve(self, delivery: Delivery, action: DeliveryAction) -> DeliveryStatus:
        try:
            return DeliveryTransitions.next_state(delivery.status, action)
        except IllegalTransition:
            self.logger.log_rejected(
                delivery.id, action.value, "illegal_transition", status=delivery.status.value
            )
            raise

    def _authorize_driver(
        self, delivery: Delivery, driver_id: str, action: DeliveryAction
    ) -> None:
        if delivery.driver_id != driver_id:
            self.logger.log_rejected(
                delivery.id, action.value, "not_assigned_driver", actor_id=driver_id
            )
            raise ActorNotPermitted(driver_id, action.value)

    async def _apply(
        self,
        delivery: Delivery,
        action: DeliveryAction,
        new_status: DeliveryStatus,
        patch: dict[str, Any],
        driver_update: DriverJobUpdate | None = None,
    ) -> None:
        applied = await self.store.conditional_update_delivery_status(
            delivery.id,
            expected_status=delivery.status,
            new_status=new_status,
            patch=patch,
            driver_update=driver_update,
        )
        if not applied:
            current = await self.load(delivery.id)
            self.logger.log_rejected(
                delivery.id, action.value, "concurrent_update", status=current.status.value
            )
            raise IllegalTransition(current.status.value, action.value)

    async def notify(self, intent: NotificationIntent) -> None:
        try:
            await self.notifications.send(intent)
        except Exception as e:
            self.logger.logger.warning(
                "notification_failed",
                user_id=intent.user_id,
                category=intent.category.value,
                error=str(e),
            )

    async def _publish(self, delivery: Delivery, previous_status: DeliveryStatus | None) -> None:
        event = DeliveryEvent(
            delivery_id=delivery.id,
            status=delivery.status.value,
            previous_status=previous_status.value if previous_status else None,
            driver_id=delivery.driver_id,
            occurred_at=self.clock(),
        )
        try:
            await self.realtime.publish(event)
        except Exception as e:
            self.logger.logger.warning(
                "realtime_publish_failed",
                delivery_id=delivery.id,
                error=str(e),
            )
