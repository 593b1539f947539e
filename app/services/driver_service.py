# app/services/driver_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import DriverNotFound
from app.models.driver import Driver, LedgerEntry
from app.repositories.driver_repo import DriverRepository

logger = logging.getLogger(__name__)


class DriverService:
    """
    Driver profile & admin operations.

    Responsibilities:
      - profile reads
      - verification (documents approved)
      - kill switch: immediate suspension from the dispatch pool
      - universal block / unblock
      - push token registration
    """

    def __init__(self, repo: DriverRepository):
        self.repo = repo

    def get_driver(self, session: Session, driver_id: uuid.UUID) -> Driver:
        driver = self.repo.get_by_id(session, driver_id)
        if not driver:
            raise DriverNotFound(driver_id)
        return driver

    def list_drivers(self, session: Session, skip: int, limit: int) -> list[Driver]:
        return self.repo.list_drivers(session, skip=skip, limit=limit)

    def list_ledger(self, session: Session, driver_id: uuid.UUID) -> list[LedgerEntry]:
        self.get_driver(session, driver_id)
        return self.repo.list_ledger_entries(session, driver_id)

    # ----- Admin operations -----

    def verify(self, session: Session, driver_id: uuid.UUID) -> Driver:
        driver = self.get_driver(session, driver_id)
        driver.is_verified = True
        logger.info(f"Driver {driver_id} verified")
        return self.repo.update(session, driver)

    def suspend(self, session: Session, driver_id: uuid.UUID) -> Driver:
        """Kill switch: offline and unavailable right now."""
        driver = self.get_driver(session, driver_id)
        driver.is_online = False
        driver.is_available = False
        logger.warning(f"Driver {driver_id} suspended")
        return self.repo.update(session, driver)

    def set_blocked(self, session: Session, driver_id: uuid.UUID, blocked: bool) -> Driver:
        driver = self.get_driver(session, driver_id)
        driver.is_blocked = blocked
        if blocked:
            driver.is_online = False
            driver.is_available = False
        return self.repo.update(session, driver)

    # ----- Self -----

    def add_push_token(self, session: Session, driver_id: uuid.UUID, token: str) -> Driver:
        driver = self.get_driver(session, driver_id)
        if token not in driver.fcm_tokens:
            driver.fcm_tokens = [*driver.fcm_tokens, token]
        return self.repo.update(session, driver)
