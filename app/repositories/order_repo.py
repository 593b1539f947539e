# app/repositories/order_repo.py
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlmodel import Session, select

from app.models.order import Order
from app.repositories.cas import compare_and_set


class OrderRepository:
    """
    Data access layer for orders.

    NOTE:
      - No commits here; lifecycle writes are bundled with other rows
        (driver, ledger) by the services, which call session.commit().
      - `status` is never written with a blind update: use
        apply_transition() / claim(), which are conditional.
    """

    # ---- Reads ----

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def refresh(self, session: Session, order_id: uuid.UUID) -> Order | None:
        """Re-read an order, discarding whatever the session had cached."""
        return session.get(Order, order_id, populate_existing=True)

    def get_by_order_number(self, session: Session, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number)
        return session.exec(stmt).first()

    def list_for_client(
        self,
        session: Session,
        client_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.client_id == client_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_for_merchant(
        self,
        session: Session,
        merchant_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.merchant_id == merchant_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_for_driver(
        self,
        session: Session,
        driver_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20,
    ) -> list[Order]:
        """Open offers (searching_driver) plus the driver's own orders."""
        stmt = (
            select(Order)
            .where(
                or_(
                    Order.driver_id == driver_id,
                    Order.status == "searching_driver",
                )
            )
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_stuck_searching(
        self,
        session: Session,
        older_than: datetime,
    ) -> list[Order]:
        """Orders still waiting for a driver since before `older_than`."""
        stmt = (
            select(Order)
            .where(Order.status == "searching_driver")
            .where(Order.driver_id == None)  # noqa: E711
            .where(Order.updated_at < older_than)
            .order_by(Order.updated_at)
        )
        return session.exec(stmt).all()

    # ---- Writes ----

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        """Persist non-lifecycle fields (validation results, rating, cash)."""
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def apply_transition(
        self,
        session: Session,
        order_id: uuid.UUID,
        expected_status: str,
        values: dict[str, Any],
    ) -> bool:
        """
        Write status + history + timestamps in one UPDATE, only if the
        order is still in `expected_status`.
        """
        return compare_and_set(
            session,
            Order,
            order_id,
            expected={"status": expected_status},
            values=values,
        )

    def claim(
        self,
        session: Session,
        order_id: uuid.UUID,
        values: dict[str, Any],
    ) -> bool:
        """
        Claim an order for a driver: succeeds only while the order is
        searching_driver AND has no driver.
        """
        return compare_and_set(
            session,
            Order,
            order_id,
            expected={"status": "searching_driver", "driver_id": None},
            values=values,
        )

    def touch_search(self, session: Session, order_id: uuid.UUID, at: datetime) -> bool:
        """Restart the waiting clock of an order still searching for a driver."""
        return compare_and_set(
            session,
            Order,
            order_id,
            expected={"status": "searching_driver", "driver_id": None},
            values={"updated_at": at},
        )
