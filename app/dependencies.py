# app/dependencies.py
"""
Composition root: builds repositories and services once and wires the
domain event handlers. Routers receive the result via Depends(get_services).
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable

from app.core.config import Settings, get_settings
from app.core.events import (
    EventBus,
    OrderCancelled,
    OrderDelivered,
    OrderReadyForDispatch,
)
from app.core.push import PushClient
from app.core.supabase_client import supabase_admin
from app.repositories.driver_repo import DriverRepository
from app.repositories.merchant_repo import MerchantRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.user_repo import UserRepository
from app.services.dispatch_service import DispatchService
from app.services.driver_service import DriverService
from app.services.ledger_service import LedgerService
from app.services.merchant_service import MerchantService
from app.services.order_service import OrderService
from app.services.presence_service import PresenceService
from app.services.pricing_service import PriceIntegrityValidator
from app.services.stats_service import StatsService
from app.services.user_service import UserService


@dataclass
class Services:
    events: EventBus
    push: PushClient
    orders: OrderService
    validator: PriceIntegrityValidator
    dispatch: DispatchService
    ledger: LedgerService
    stats: StatsService
    presence: PresenceService
    drivers: DriverService
    merchants: MerchantService
    users: UserService


def build_services(
    settings: Settings,
    push: PushClient,
    auth_admin: Callable[[], Any] = supabase_admin,
) -> Services:
    order_repo = OrderRepository()
    driver_repo = DriverRepository()
    merchant_repo = MerchantRepository()
    user_repo = UserRepository()

    events = EventBus()
    validator = PriceIntegrityValidator(merchant_repo, user_repo, push, settings)
    orders = OrderService(order_repo, validator, events)
    dispatch = DispatchService(order_repo, driver_repo, merchant_repo, push, settings)
    ledger = LedgerService(driver_repo, order_repo)
    stats = StatsService(user_repo, order_repo, settings)
    presence = PresenceService(driver_repo, settings)

    # Broadcast failures must not undo the ready -> searching_driver move
    events.subscribe(OrderReadyForDispatch, dispatch.handle_ready_for_dispatch)
    # Cash ledger is authoritative; stats are not. Stats run first so a
    # settlement failure cannot skip them.
    events.subscribe(OrderDelivered, stats.handle_order_delivered)
    events.subscribe(OrderDelivered, ledger.handle_order_delivered, critical=True)
    events.subscribe(OrderCancelled, stats.handle_order_cancelled)
    events.subscribe(OrderCancelled, presence.handle_order_cancelled)

    return Services(
        events=events,
        push=push,
        orders=orders,
        validator=validator,
        dispatch=dispatch,
        ledger=ledger,
        stats=stats,
        presence=presence,
        drivers=DriverService(driver_repo),
        merchants=MerchantService(merchant_repo),
        users=UserService(user_repo, driver_repo, auth_admin, settings),
    )


@lru_cache
def get_services() -> Services:
    settings = get_settings()
    push = PushClient(
        credentials_path=settings.FIREBASE_CREDENTIALS_PATH,
        enabled=settings.PUSH_ENABLED,
    )
    return build_services(settings, push)
