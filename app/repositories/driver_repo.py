# app/repositories/driver_repo.py
import uuid
from datetime import datetime

from sqlalchemy import or_, update
from sqlmodel import Session, select

from app.models.driver import Driver, LedgerEntry


class DriverRepository:
    """
    Data access layer for Driver & LedgerEntry.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - No commits in the ledger helpers: the cash ledger runs several
      of them inside one transaction.
    """

    # ----- Drivers -----

    def get_by_id(self, session: Session, driver_id: uuid.UUID) -> Driver | None:
        return session.get(Driver, driver_id)

    def get_for_update(self, session: Session, driver_id: uuid.UUID) -> Driver | None:
        """
        Load the driver row locked for the rest of the transaction
        (SELECT ... FOR UPDATE where the backend supports it), bypassing
        any stale copy in the identity map.
        """
        return session.get(
            Driver,
            driver_id,
            with_for_update=True,
            populate_existing=True,
        )

    def list_drivers(self, session: Session, skip: int = 0, limit: int = 50) -> list[Driver]:
        stmt = select(Driver).order_by(Driver.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_dispatch_candidates(self, session: Session) -> list[Driver]:
        """
        Drivers that may receive an offer right now:
        online, available, verified, not cash-blocked, not blocked.
        """
        stmt = (
            select(Driver)
            .where(Driver.is_online == True)  # noqa: E712
            .where(Driver.is_available == True)  # noqa: E712
            .where(Driver.is_blocked_due_to_cash == False)  # noqa: E712
            .where(Driver.is_verified == True)  # noqa: E712
        )
        return [d for d in session.exec(stmt).all() if not d.is_blocked]

    def create(self, session: Session, driver: Driver) -> Driver:
        session.add(driver)
        session.commit()
        session.refresh(driver)
        return driver

    def update(self, session: Session, driver: Driver) -> Driver:
        session.add(driver)
        session.commit()
        session.refresh(driver)
        return driver

    # ----- Bulk presence / stats -----

    def mark_stale_offline(self, session: Session, seen_before: datetime) -> int:
        """
        Mark every online driver whose last heartbeat is older than
        `seen_before` (or missing) as offline. Returns affected rows.
        """
        stmt = (
            update(Driver)
            .where(Driver.is_online == True)  # noqa: E712
            .where(
                or_(
                    Driver.location_updated_at == None,  # noqa: E711
                    Driver.location_updated_at < seen_before,
                )
            )
            .values(is_online=False)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        session.commit()
        return result.rowcount

    def reset_daily_stats(self, session: Session) -> int:
        stmt = (
            update(Driver)
            .values(today_deliveries=0, today_earnings=0.0)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        session.commit()
        return result.rowcount

    # ----- Ledger -----

    def add_ledger_entry(self, session: Session, entry: LedgerEntry) -> LedgerEntry:
        session.add(entry)
        session.flush()
        return entry

    def list_ledger_entries(
        self,
        session: Session,
        driver_id: uuid.UUID,
    ) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.driver_id == driver_id)
            .order_by(LedgerEntry.created_at)
        )
        return session.exec(stmt).all()
