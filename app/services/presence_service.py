# app/services/presence_service.py
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from app.core.config import Settings
from app.core.errors import DriverNotEligible, DriverNotFound
from app.core.events import OrderCancelled
from app.models.driver import Driver
from app.repositories.driver_repo import DriverRepository

logger = logging.getLogger(__name__)


class PresenceService:
    """
    Driver availability.

    Responsibilities:
      - heartbeat (last known location + liveness)
      - opt in / out of the dispatch pool
      - stale-presence reaper: online drivers without a recent heartbeat
        are marked offline
      - release a driver when their order is cancelled
      - daily reset of today_* counters
    """

    def __init__(self, driver_repo: DriverRepository, settings: Settings):
        self.driver_repo = driver_repo
        self.settings = settings

    def _get_driver(self, session: Session, driver_id: uuid.UUID) -> Driver:
        driver = self.driver_repo.get_by_id(session, driver_id)
        if driver is None:
            raise DriverNotFound(driver_id)
        return driver

    # ---- Driver-facing ----

    def heartbeat(
        self,
        session: Session,
        driver_id: uuid.UUID,
        lat: float,
        lng: float,
    ) -> Driver:
        driver = self._get_driver(session, driver_id)
        driver.last_lat = lat
        driver.last_lng = lng
        driver.location_updated_at = datetime.now(timezone.utc)
        return self.driver_repo.update(session, driver)

    def go_online(self, session: Session, driver_id: uuid.UUID) -> Driver:
        """
        Join the dispatch pool. Refused while the driver is unverified,
        blocked, or over the cash limit.
        """
        driver = self._get_driver(session, driver_id)
        if driver.is_blocked:
            raise DriverNotEligible("Driver account is blocked")
        if not driver.is_verified:
            raise DriverNotEligible("Driver is not verified")
        if driver.is_blocked_due_to_cash:
            raise DriverNotEligible("Cash limit reached - settle your balance first")

        driver.is_online = True
        driver.is_available = driver.current_order_id is None
        driver.location_updated_at = datetime.now(timezone.utc)
        return self.driver_repo.update(session, driver)

    def go_offline(self, session: Session, driver_id: uuid.UUID) -> Driver:
        driver = self._get_driver(session, driver_id)
        driver.is_online = False
        driver.is_available = False
        return self.driver_repo.update(session, driver)

    # ---- Event handlers ----

    def handle_order_cancelled(self, session: Session, event: OrderCancelled) -> None:
        """Free the driver that was holding a cancelled order."""
        if event.driver_id is None:
            return
        driver = self.driver_repo.get_by_id(session, event.driver_id)
        if driver is None:
            return
        driver.is_available = True
        driver.current_order_id = None
        self.driver_repo.update(session, driver)
        logger.info(f"Driver {driver.id} released from cancelled order {event.order_id}")

    # ---- Scheduled jobs ----

    def reap_stale_drivers(self, session: Session, now: datetime | None = None) -> int:
        """
        Mark offline every online driver whose last heartbeat is older
        than PRESENCE_TIMEOUT_MINUTES. Single bulk UPDATE; a driver who
        heartbeats concurrently just comes back online on the next beat.
        """
        now = now or datetime.now(timezone.utc)
        threshold = now - timedelta(minutes=self.settings.PRESENCE_TIMEOUT_MINUTES)
        count = self.driver_repo.mark_stale_offline(session, threshold)
        if count > 0:
            logger.info(f"Marked {count} stale drivers as offline")
        return count

    def reset_daily_stats(self, session: Session) -> int:
        count = self.driver_repo.reset_daily_stats(session)
        logger.info(f"Reset daily stats for {count} drivers")
        return count
