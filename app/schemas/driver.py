# app/schemas/driver.py
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class DriverRead(SQLModel):
    id: uuid.UUID
    display_name: str | None
    phone: str | None
    vehicle: str | None
    is_verified: bool
    is_blocked: bool
    is_online: bool
    is_available: bool
    assigned_restaurant_id: uuid.UUID | None
    cash_in_hand: float
    max_cash_limit: float
    is_blocked_due_to_cash: bool
    current_order_id: uuid.UUID | None
    location_updated_at: datetime | None
    total_deliveries: int
    today_deliveries: int
    today_earnings: float


class HeartbeatCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DriverBlockUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    is_blocked: bool


class LiquidationRequest(SQLModel):
    """
    Office cash settlement.

    `amount_paid` is deliberately untyped here: the ledger validates it
    inside its transaction and answers with `invalid-argument`.
    """

    model_config = ConfigDict(extra="forbid")

    amount_paid: Any = None


class LiquidationResult(SQLModel):
    success: bool
    message: str
    driver_id: uuid.UUID
    previous_debt: float
    new_debt: float
