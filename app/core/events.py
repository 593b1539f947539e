# app/core/events.py
"""
In-process domain events.

The lifecycle controller publishes events after a transition is committed;
independent handlers react to them (dispatch, stats, cash ledger).

Handlers are registered either as critical (an error propagates to the
publisher) or best-effort (an error is logged and swallowed).
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlmodel import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderEvent:
    order_id: uuid.UUID
    actor_id: str
    previous_status: str | None = None


@dataclass(frozen=True)
class OrderReadyForDispatch(OrderEvent):
    pass


@dataclass(frozen=True)
class OrderDelivered(OrderEvent):
    driver_id: uuid.UUID | None = None


@dataclass(frozen=True)
class OrderCancelled(OrderEvent):
    driver_id: uuid.UUID | None = None
    reason: str | None = None


Handler = Callable[[Session, Any], None]


@dataclass
class _Subscription:
    handler: Handler
    critical: bool
    name: str = field(default="")


class EventBus:
    """
    Synchronous publish/subscribe keyed by event class.

    Handlers run in registration order, in the publisher's request, sharing
    its Session. Each handler is responsible for its own commit.
    """

    def __init__(self):
        self._subscriptions: dict[type, list[_Subscription]] = {}

    def subscribe(
        self,
        event_type: type,
        handler: Handler,
        critical: bool = False,
    ) -> None:
        name = getattr(handler, "__qualname__", repr(handler))
        self._subscriptions.setdefault(event_type, []).append(
            _Subscription(handler=handler, critical=critical, name=name)
        )

    def publish(self, session: Session, event: OrderEvent) -> None:
        for sub in self._subscriptions.get(type(event), []):
            try:
                sub.handler(session, event)
            except Exception as e:
                # Leave the session usable for the next handler
                session.rollback()
                if sub.critical:
                    logger.error(
                        f"Critical handler {sub.name} failed for "
                        f"{type(event).__name__} on order {event.order_id}: {e}"
                    )
                    raise
                logger.warning(
                    f"Handler {sub.name} failed for {type(event).__name__} "
                    f"on order {event.order_id}: {e}"
                )
