# app/services/merchant_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.actor import Actor
from app.core.errors import PermissionDenied
from app.models.merchant import Merchant, MenuItem
from app.repositories.merchant_repo import MerchantRepository
from app.schemas.merchant import MenuItemCreate, MenuItemUpdate, MerchantCreate


class MerchantService:
    """
    Business logic for Merchant & MenuItem.

    Responsibilities:
      - merchant lookup and creation (admin)
      - menu maintenance by the merchant's staff or an admin
      - open / closed toggle (checked when an order is validated)
      - push token registration for new-order alerts
    """

    def __init__(self, repo: MerchantRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _ensure_can_manage(actor: Actor, merchant_id: uuid.UUID) -> None:
        if actor.role == "admin":
            return
        if actor.role == "merchant" and actor.merchant_id == merchant_id:
            return
        raise PermissionDenied("Only this merchant's staff can do that")

    # ----- Merchants -----

    def list_merchants(self, session: Session, skip: int = 0, limit: int = 50) -> list[Merchant]:
        return self.repo.list_merchants(session, skip=skip, limit=limit)

    def get_merchant(self, session: Session, merchant_id: uuid.UUID) -> Merchant:
        merchant = self.repo.get_by_id(session, merchant_id)
        if not merchant:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Merchant not found",
            )
        return merchant

    def create_merchant(self, session: Session, payload: MerchantCreate) -> Merchant:
        merchant = Merchant(
            name=payload.name,
            owner_id=payload.owner_id,
            is_open=payload.is_open,
            commission_rate=payload.commission_rate,
            delivery_fee=payload.delivery_fee,
        )
        return self.repo.create(session, merchant)

    def set_open(
        self,
        session: Session,
        actor: Actor,
        merchant_id: uuid.UUID,
        is_open: bool,
    ) -> Merchant:
        self._ensure_can_manage(actor, merchant_id)
        merchant = self.get_merchant(session, merchant_id)
        merchant.is_open = is_open
        return self.repo.update(session, merchant)

    def add_push_token(
        self,
        session: Session,
        actor: Actor,
        merchant_id: uuid.UUID,
        token: str,
    ) -> Merchant:
        self._ensure_can_manage(actor, merchant_id)
        merchant = self.get_merchant(session, merchant_id)
        if token not in merchant.fcm_tokens:
            merchant.fcm_tokens = [*merchant.fcm_tokens, token]
        return self.repo.update(session, merchant)

    # ----- Menu -----

    def list_menu(
        self,
        session: Session,
        merchant_id: uuid.UUID,
        only_available: bool = False,
    ) -> list[MenuItem]:
        self.get_merchant(session, merchant_id)
        return self.repo.list_menu(session, merchant_id, only_available=only_available)

    def add_menu_item(
        self,
        session: Session,
        actor: Actor,
        merchant_id: uuid.UUID,
        payload: MenuItemCreate,
    ) -> MenuItem:
        self._ensure_can_manage(actor, merchant_id)
        self.get_merchant(session, merchant_id)
        item = MenuItem(
            merchant_id=merchant_id,
            name=payload.name,
            description=payload.description,
            price=payload.price,
            is_available=payload.is_available,
            modifier_groups=[g.model_dump() for g in payload.modifier_groups],
        )
        return self.repo.create_menu_item(session, item)

    def update_menu_item(
        self,
        session: Session,
        actor: Actor,
        merchant_id: uuid.UUID,
        item_id: uuid.UUID,
        payload: MenuItemUpdate,
    ) -> MenuItem:
        """
        Partial update of a menu item.
        """
        self._ensure_can_manage(actor, merchant_id)
        item = self.repo.get_menu_item(session, item_id)
        if not item or item.merchant_id != merchant_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Menu item not found for this merchant",
            )

        if payload.name is not None:
            item.name = payload.name.strip()

        if payload.description is not None:
            item.description = payload.description

        if payload.price is not None:
            item.price = payload.price

        if payload.is_available is not None:
            item.is_available = payload.is_available

        if payload.modifier_groups is not None:
            item.modifier_groups = [g.model_dump() for g in payload.modifier_groups]

        return self.repo.update_menu_item(session, item)
