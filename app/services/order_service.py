# app/services/order_service.py
import logging
import secrets
import string
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.actor import Actor, SYSTEM_ACTOR
from app.core.errors import (
    DomainError,
    InvalidTransition,
    OrderNotFound,
    PermissionDenied,
    ValidationFailure,
)
from app.core.events import (
    EventBus,
    OrderCancelled,
    OrderDelivered,
    OrderReadyForDispatch,
)
from app.models.order import Order
from app.repositories.order_repo import OrderRepository
from app.schemas.order import OrderCreate
from app.services import fsm
from app.services.pricing_service import PriceIntegrityValidator

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"
ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_SUFFIX_LEN = 6


class OrderService:
    """
    Order lifecycle controller.

    Responsibilities:
      - Create an order from a checkout payload and run the price/integrity
        validator before the merchant can see it
      - Apply status transitions: FSM + role check, history append,
        milestone timestamp, all in one conditional UPDATE
      - Auto-advance ready -> searching_driver (system actor)
      - Publish domain events for side effects (dispatch, stats, ledger)
      - Cash payment record, rating, role-scoped listing
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        validator: PriceIntegrityValidator,
        events: EventBus,
    ):
        self.order_repo = order_repo
        self.validator = validator
        self.events = events

    # -------- Creation --------

    def create_order(
        self,
        session: Session,
        actor: Actor,
        payload: OrderCreate,
    ) -> Order:
        """
        Checkout.

        Steps:
          1. Persist the order as submitted (status='created').
          2. Run the price/integrity validator:
             - hard gate failure => cancel with the validator's reason
             - success           => persist server items/totals, alert merchant
             - any other error   => log; order stays as submitted
          3. Return the order as stored.
        """
        now = datetime.now(timezone.utc)
        at = now.isoformat()

        items = [item.model_dump(mode="json") for item in payload.items]
        declared_subtotal = round(sum(item.subtotal for item in payload.items), 2)
        declared_total = (
            declared_subtotal
            + (payload.delivery_fee or 0)
            + (payload.service_fee or 0)
            - payload.discount
        )

        timestamps = fsm.empty_timestamps()
        timestamps[fsm.milestone_for(fsm.CREATED)] = at

        order = Order(
            order_number=self._new_order_number(session, now),
            client_id=actor.user_id,
            merchant_id=payload.merchant_id,
            status=fsm.CREATED,
            items=items,
            totals={
                "subtotal": declared_subtotal,
                "deliveryFee": payload.delivery_fee,
                "serviceFee": payload.service_fee,
                "discount": payload.discount,
                "total": round(declared_total, 2),
            },
            payment={
                "method": payload.payment_method,
                "status": "pending_cash" if payload.payment_method == "cash" else "pending",
                "paidAt": None,
                "cashCollected": None,
            },
            timestamps=timestamps,
            status_history=[{"status": fsm.CREATED, "at": at, "actor": actor.id}],
            delivery_address=payload.delivery_address,
            notes=payload.notes,
            created_at=now,
            updated_at=now,
        )
        order = self.order_repo.create_order(session, order)
        session.commit()

        self._validate_new_order(session, order.id)
        return self.order_repo.refresh(session, order.id)

    # -------- Lifecycle --------

    def transition(
        self,
        session: Session,
        order_id: uuid.UUID,
        requested: str,
        actor: Actor,
        reason: str | None = None,
    ) -> Order:
        """
        Move an order to `requested`.

        Raises:
            OrderNotFound: unknown order id.
            InvalidTransition: edge not in the graph, role not allowed, or
                the order changed underneath us. Nothing is written.
            PermissionDenied: actor does not own the order.

        Re-requesting the current status is a no-op.
        """
        order = self._get_or_404(session, order_id)
        self._check_ownership(order, actor)

        if order.status == requested:
            return order

        if requested == fsm.ASSIGNED_TO_DRIVER:
            raise InvalidTransition(
                order.status, requested, reason="drivers claim orders via accept"
            )

        fsm.ensure_transition(order.status, requested, actor.role)

        previous_status = order.status
        previous_driver = order.driver_id
        now = datetime.now(timezone.utc)

        values = fsm.build_transition_values(
            order.status_history,
            order.timestamps,
            requested,
            actor.id,
            now,
            reason=reason,
        )
        if requested == fsm.DELIVERED and order.payment.get("method") == "cash":
            values["payment"] = {
                **order.payment,
                "status": "collected",
                "paidAt": now.isoformat(),
            }
        if requested == fsm.CANCELLED:
            values["cancel_reason"] = reason
            values["driver_id"] = None

        self._commit_transition(session, order, requested, values)
        logger.info(
            f"Order {order.order_number}: {previous_status} -> {requested} by {actor.role}:{actor.id}"
        )

        if requested == fsm.READY:
            self._start_driver_search(session, order_id)
        elif requested == fsm.DELIVERED:
            self.events.publish(
                session,
                OrderDelivered(
                    order_id=order_id,
                    actor_id=actor.id,
                    previous_status=previous_status,
                    driver_id=previous_driver,
                ),
            )
        elif requested == fsm.CANCELLED:
            self.events.publish(
                session,
                OrderCancelled(
                    order_id=order_id,
                    actor_id=actor.id,
                    previous_status=previous_status,
                    driver_id=previous_driver,
                    reason=reason,
                ),
            )

        return self.order_repo.refresh(session, order_id)

    def cancel(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Actor,
        reason: str | None = None,
    ) -> Order:
        return self.transition(session, order_id, fsm.CANCELLED, actor, reason=reason)

    # -------- Payment & rating --------

    def record_cash_payment(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Actor,
        amount: float,
    ) -> Order:
        """
        The assigned driver records how much cash was handed over.
        Only while the order is in the driver's hands.
        """
        order = self._get_or_404(session, order_id)
        self._check_ownership(order, actor)

        if order.payment.get("method") != "cash":
            raise DomainError("Order is not paid in cash")
        if order.status not in {fsm.PICKED_UP, fsm.ON_THE_WAY}:
            raise DomainError(f"Cannot record cash payment while order is {order.status}")

        now = datetime.now(timezone.utc)
        order.payment = {
            **order.payment,
            "cashCollected": round(amount, 2),
            "status": "collected",
            "paidAt": now.isoformat(),
        }
        order.updated_at = now
        self.order_repo.update_order(session, order)
        session.commit()
        return self.order_repo.refresh(session, order_id)

    def rate_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Actor,
        rating: int,
    ) -> Order:
        """Client rates a delivered order, once."""
        order = self._get_or_404(session, order_id)
        self._check_ownership(order, actor)

        if order.status != fsm.DELIVERED:
            raise DomainError("Only delivered orders can be rated")
        if order.rating is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Order already rated",
            )

        order.rating = rating
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        return self.order_repo.refresh(session, order_id)

    # -------- Reads --------

    def list_orders(
        self,
        session: Session,
        actor: Actor,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        Orders visible to the actor:
          - client:   own orders
          - merchant: orders of their merchant
          - driver:   open offers + own deliveries
          - admin:    everything (most recent first)
        """
        if actor.role == "client":
            return self.order_repo.list_for_client(session, actor.user_id, skip, limit)
        if actor.role == "merchant":
            if actor.merchant_id is None:
                return []
            return self.order_repo.list_for_merchant(session, actor.merchant_id, skip, limit)
        if actor.role == "driver":
            return self.order_repo.list_for_driver(session, actor.user_id, skip, limit)
        return self.order_repo.list_all(session, skip, limit)

    def get_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Actor,
    ) -> Order:
        order = self._get_or_404(session, order_id)
        if actor.role == "driver" and order.status == fsm.SEARCHING_DRIVER:
            return order
        self._check_ownership(order, actor)
        return order

    # -------- Internal helpers --------

    def _validate_new_order(self, session: Session, order_id: uuid.UUID) -> None:
        """
        Integrity gate. Pricing/availability/trust failures cancel the
        order; anything else is logged and the order is left as submitted.
        """
        try:
            order = self.order_repo.refresh(session, order_id)
            try:
                outcome = self.validator.validate(session, order)
            except ValidationFailure as e:
                logger.warning(
                    f"Order {order.order_number} rejected by validation: {e.reason}"
                )
                self.cancel(session, order_id, SYSTEM_ACTOR, reason=e.reason)
                return

            order.items = outcome.items
            order.totals = outcome.totals
            order.server_validated = True
            order.price_manipulated = outcome.price_manipulated
            order.trust_warning = outcome.trust_warning
            order.updated_at = datetime.now(timezone.utc)
            self.order_repo.update_order(session, order)
            session.commit()

            logger.info(
                f"Order {order.order_number} validated - ${order.totals['total']} - "
                f"manipulated: {outcome.price_manipulated}"
            )
            self.validator.notify_merchant(outcome.merchant, order)
        except Exception as e:
            session.rollback()
            logger.error(f"Validation error for order {order_id}: {e}")

    def _start_driver_search(self, session: Session, order_id: uuid.UUID) -> None:
        """System follow-on: ready -> searching_driver, then dispatch."""
        order = self.order_repo.refresh(session, order_id)
        if order is None or order.status != fsm.READY:
            return

        values = fsm.build_transition_values(
            order.status_history,
            order.timestamps,
            fsm.SEARCHING_DRIVER,
            SYSTEM_ACTOR.id,
            datetime.now(timezone.utc),
        )
        fsm.ensure_transition(order.status, fsm.SEARCHING_DRIVER, SYSTEM_ACTOR.role)
        self._commit_transition(session, order, fsm.SEARCHING_DRIVER, values)

        self.events.publish(
            session,
            OrderReadyForDispatch(
                order_id=order_id,
                actor_id=SYSTEM_ACTOR.id,
                previous_status=fsm.READY,
            ),
        )

    def _commit_transition(
        self,
        session: Session,
        order: Order,
        requested: str,
        values: dict,
    ) -> None:
        if not self.order_repo.apply_transition(session, order.id, order.status, values):
            session.rollback()
            raise InvalidTransition(
                order.status, requested, reason="order was modified concurrently"
            )
        session.commit()

    def _get_or_404(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.refresh(session, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    @staticmethod
    def _check_ownership(order: Order, actor: Actor) -> None:
        """
        Role filtering is the FSM's job; this only checks that the actor
        is a party to this particular order.
        """
        if actor.role in {"admin", "system"}:
            return
        if actor.role == "client" and order.client_id == actor.user_id:
            return
        if actor.role == "merchant" and order.merchant_id == actor.merchant_id:
            return
        if actor.role == "driver" and order.driver_id == actor.user_id:
            return
        raise PermissionDenied("You are not a party to this order")

    def _new_order_number(self, session: Session, now: datetime) -> str:
        """ORD-YYYYMMDD-XXXXXX, re-rolled on the (unlikely) collision."""
        date_part = now.strftime("%Y%m%d")
        while True:
            suffix = "".join(
                secrets.choice(ORDER_NUMBER_ALPHABET)
                for _ in range(ORDER_NUMBER_SUFFIX_LEN)
            )
            number = f"{ORDER_NUMBER_PREFIX}-{date_part}-{suffix}"
            if self.order_repo.get_by_order_number(session, number) is None:
                return number
