# app/services/stats_service.py
import logging
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.config import Settings
from app.core.events import OrderCancelled, OrderDelivered
from app.repositories.order_repo import OrderRepository
from app.repositories.user_repo import UserRepository
from app.services import fsm

logger = logging.getLogger(__name__)


class StatsService:
    """
    Denormalized client counters kept up to date from order events.

    Best-effort: a failure here is logged by the event bus and never
    undoes the transition that triggered it.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        order_repo: OrderRepository,
        settings: Settings,
    ):
        self.user_repo = user_repo
        self.order_repo = order_repo
        self.settings = settings

    def handle_order_delivered(self, session: Session, event: OrderDelivered) -> None:
        order = self.order_repo.get_by_id(session, event.order_id)
        if order is None or order.client_id is None:
            return
        self.user_repo.record_completed_order(
            session, order.client_id, datetime.now(timezone.utc)
        )

    def handle_order_cancelled(self, session: Session, event: OrderCancelled) -> None:
        """
        Late cancellation (merchant already cooking, or driver search
        started) costs the client trust score.
        """
        if event.previous_status not in fsm.LATE_CANCEL_STATES:
            return
        order = self.order_repo.get_by_id(session, event.order_id)
        if order is None or order.client_id is None:
            return

        penalty = self.settings.LATE_CANCEL_PENALTY
        self.user_repo.penalize_late_cancel(session, order.client_id, penalty)
        logger.info(
            f"Client {order.client_id} penalized {penalty} trust points "
            f"for cancelling order {order.order_number} from {event.previous_status}"
        )
