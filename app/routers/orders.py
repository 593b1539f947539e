# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.actor import Actor
from app.core.auth import actor_for, get_actor, require_admin, require_roles
from app.database import get_session
from app.dependencies import Services, get_services
from app.models.user import User
from app.schemas.order import (
    CashPaymentCreate,
    OrderCancel,
    OrderCreate,
    OrderRatingCreate,
    OrderRead,
    OrderStatusUpdate,
)

router = APIRouter(prefix="/orders", tags=["Orders"])


# -------- Client endpoints --------


@router.post("", response_model=OrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles("client")),
):
    """
    Checkout.

    The order is stored as submitted, then re-priced against the menu.
    If the restaurant is closed, an item is unavailable or the client's
    trust score is too low, the returned order is already `cancelled`
    with `cancel_reason` set.
    """
    return services.orders.create_order(session, actor_for(current_user), payload)


@router.post("/{order_id}/rating", response_model=OrderRead)
def rate_order(
    order_id: uuid.UUID,
    payload: OrderRatingCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles("client")),
):
    return services.orders.rate_order(
        session, order_id, actor_for(current_user), payload.rating
    )


# -------- Shared endpoints (scoped by role) --------


@router.get("", response_model=list[OrderRead])
def list_orders(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
    skip: int = 0,
    limit: int = 50,
):
    """
    List orders visible to the caller:
      - client: own orders
      - merchant: orders of their restaurant
      - driver: open offers + own deliveries
      - admin: all orders
    """
    return services.orders.list_orders(session, actor, skip, limit)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    return services.orders.get_order(session, order_id, actor)


@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    """
    Request a lifecycle transition.

      created          -> confirmed, cancelled

      confirmed        -> preparing, cancelled

      preparing        -> ready, cancelled

      ready            -> searching_driver (automatic)

      searching_driver -> assigned_to_driver (via /accept), cancelled

      assigned_to_driver -> picked_up, cancelled

      picked_up        -> on_the_way

      on_the_way       -> delivered

    Rejected transitions answer 409 and leave the order unchanged.
    """
    return services.orders.transition(session, order_id, payload.status, actor)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: uuid.UUID,
    payload: OrderCancel,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    return services.orders.cancel(session, order_id, actor, reason=payload.reason)


# -------- Driver endpoints --------


@router.post("/{order_id}/accept", response_model=OrderRead)
def accept_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles("driver")),
):
    """
    Claim an order that is searching for a driver.

    Exactly one concurrent claim wins; the others get 409 `already_taken`.
    """
    return services.dispatch.accept_order(session, order_id, actor_for(current_user))


@router.post("/{order_id}/cash-payment", response_model=OrderRead)
def record_cash_payment(
    order_id: uuid.UUID,
    payload: CashPaymentCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles("driver")),
):
    return services.orders.record_cash_payment(
        session, order_id, actor_for(current_user), payload.amount
    )


# -------- Admin endpoints --------


@router.post(
    "/{order_id}/rebroadcast",
    dependencies=[Depends(require_admin)],
)
def rebroadcast_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Re-send the driver offer for an order stuck in searching_driver.
    """
    return services.dispatch.rebroadcast(session, order_id)
