# app/repositories/merchant_repo.py
import uuid

from sqlmodel import Session, select

from app.models.merchant import Merchant, MenuItem


class MerchantRepository:
    """
    Data access layer for Merchant & MenuItem.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Merchants -----

    def get_by_id(self, session: Session, merchant_id: uuid.UUID) -> Merchant | None:
        return session.get(Merchant, merchant_id)

    def list_merchants(self, session: Session, skip: int = 0, limit: int = 50) -> list[Merchant]:
        stmt = select(Merchant).order_by(Merchant.name).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, merchant: Merchant) -> Merchant:
        session.add(merchant)
        session.commit()
        session.refresh(merchant)
        return merchant

    def update(self, session: Session, merchant: Merchant) -> Merchant:
        session.add(merchant)
        session.commit()
        session.refresh(merchant)
        return merchant

    # ----- Menu -----

    def list_menu(
        self,
        session: Session,
        merchant_id: uuid.UUID,
        only_available: bool = False,
    ) -> list[MenuItem]:
        stmt = select(MenuItem).where(MenuItem.merchant_id == merchant_id)
        if only_available:
            stmt = stmt.where(MenuItem.is_available == True)  # noqa: E712
        return session.exec(stmt.order_by(MenuItem.name)).all()

    def get_menu_item(self, session: Session, item_id: uuid.UUID) -> MenuItem | None:
        return session.get(MenuItem, item_id)

    def create_menu_item(self, session: Session, item: MenuItem) -> MenuItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def update_menu_item(self, session: Session, item: MenuItem) -> MenuItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item
