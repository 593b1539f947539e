# app/routers/drivers.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_admin, require_roles
from app.database import get_session
from app.dependencies import Services, get_services
from app.models.user import User
from app.schemas.driver import (
    DriverBlockUpdate,
    DriverRead,
    HeartbeatCreate,
    LiquidationRequest,
    LiquidationResult,
)
from app.schemas.merchant import PushTokenCreate

router = APIRouter(prefix="/drivers", tags=["Drivers"])

require_driver = require_roles("driver")


# -------- Driver self endpoints --------


@router.get("/me", response_model=DriverRead)
def read_me(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_driver),
):
    return services.drivers.get_driver(session, current_user.id)


@router.post("/me/heartbeat", response_model=DriverRead)
def heartbeat(
    payload: HeartbeatCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_driver),
):
    """
    Location ping. Drivers that stop pinging are taken offline by the
    stale-presence reaper.
    """
    return services.presence.heartbeat(session, current_user.id, payload.lat, payload.lng)


@router.post("/me/online", response_model=DriverRead)
def go_online(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_driver),
):
    return services.presence.go_online(session, current_user.id)


@router.post("/me/offline", response_model=DriverRead)
def go_offline(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_driver),
):
    return services.presence.go_offline(session, current_user.id)


@router.post("/me/push-tokens", response_model=DriverRead)
def add_push_token(
    payload: PushTokenCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_driver),
):
    return services.drivers.add_push_token(session, current_user.id, payload.token)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[DriverRead],
    dependencies=[Depends(require_admin)],
)
def list_drivers(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    skip: int = 0,
    limit: int = 50,
):
    return services.drivers.list_drivers(session, skip, limit)


@router.post(
    "/{driver_id}/verify",
    response_model=DriverRead,
    dependencies=[Depends(require_admin)],
)
def verify_driver(
    driver_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return services.drivers.verify(session, driver_id)


@router.post(
    "/{driver_id}/suspend",
    response_model=DriverRead,
    dependencies=[Depends(require_admin)],
)
def suspend_driver(
    driver_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    """Kill switch: take the driver offline immediately."""
    return services.drivers.suspend(session, driver_id)


@router.post(
    "/{driver_id}/block",
    response_model=DriverRead,
    dependencies=[Depends(require_admin)],
)
def block_driver(
    driver_id: uuid.UUID,
    payload: DriverBlockUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return services.drivers.set_blocked(session, driver_id, payload.is_blocked)


@router.post(
    "/{driver_id}/liquidate",
    response_model=LiquidationResult,
)
def liquidate_debt(
    driver_id: uuid.UUID,
    payload: LiquidationRequest,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    admin: User = Depends(require_admin),
):
    """
    Record cash handed in at the office.

    Lowers `cash_in_hand` (never below zero) and lifts the cash block
    once the balance is back under the limit.
    """
    return services.ledger.liquidate(session, driver_id, payload.amount_paid, admin.id)


@router.get(
    "/{driver_id}/ledger",
    dependencies=[Depends(require_admin)],
)
def list_ledger(
    driver_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return services.drivers.list_ledger(session, driver_id)
