# app/routers/merchants.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.actor import Actor
from app.core.auth import get_actor, require_admin
from app.database import get_session
from app.dependencies import Services, get_services
from app.schemas.merchant import (
    MenuItemCreate,
    MenuItemRead,
    MenuItemUpdate,
    MerchantCreate,
    MerchantOpenUpdate,
    MerchantRead,
    PushTokenCreate,
)

router = APIRouter(prefix="/merchants", tags=["Merchants"])


# -------- Public endpoints --------


@router.get("", response_model=list[MerchantRead])
def list_merchants(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    skip: int = 0,
    limit: int = 50,
):
    return services.merchants.list_merchants(session, skip=skip, limit=limit)


@router.get("/{merchant_id}", response_model=MerchantRead)
def get_merchant(
    merchant_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return services.merchants.get_merchant(session, merchant_id)


@router.get("/{merchant_id}/menu", response_model=list[MenuItemRead])
def list_menu(
    merchant_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    only_available: bool = True,
):
    """
    Menu of a merchant.

    - Public endpoint.
    - `only_available=True` hides sold-out items by default.
    """
    return services.merchants.list_menu(
        session, merchant_id, only_available=only_available
    )


# -------- Merchant staff endpoints --------


@router.post("/{merchant_id}/menu", response_model=MenuItemRead, status_code=201)
def add_menu_item(
    merchant_id: uuid.UUID,
    payload: MenuItemCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    return services.merchants.add_menu_item(session, actor, merchant_id, payload)


@router.patch("/{merchant_id}/menu/{item_id}", response_model=MenuItemRead)
def update_menu_item(
    merchant_id: uuid.UUID,
    item_id: uuid.UUID,
    payload: MenuItemUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    """
    Partial update. Marking an item unavailable makes new orders that
    contain it fail validation.
    """
    return services.merchants.update_menu_item(
        session, actor, merchant_id, item_id, payload
    )


@router.patch("/{merchant_id}/open", response_model=MerchantRead)
def set_open(
    merchant_id: uuid.UUID,
    payload: MerchantOpenUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    return services.merchants.set_open(session, actor, merchant_id, payload.is_open)


@router.post("/{merchant_id}/push-tokens", response_model=MerchantRead)
def add_push_token(
    merchant_id: uuid.UUID,
    payload: PushTokenCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_actor),
):
    return services.merchants.add_push_token(session, actor, merchant_id, payload.token)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=MerchantRead,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_merchant(
    payload: MerchantCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return services.merchants.create_merchant(session, payload)
