# app/models/driver.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Driver(SQLModel, table=True):
    """
    Courier profile. Shares its id with the driver's `users` row.

    Availability flags:
      - is_online:    driver opted in to receive offers (and is heartbeating)
      - is_available: not currently fulfilling an order
      - is_blocked_due_to_cash: cash_in_hand reached max_cash_limit
      - is_blocked:   admin kill switch / universal block

    assigned_restaurant_id != None means the driver belongs to that
    merchant's exclusive fleet.
    """

    __tablename__ = "drivers"

    id: uuid.UUID = Field(
        foreign_key="users.id",
        primary_key=True,
        index=True,
    )

    display_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None)
    vehicle: str | None = Field(default=None)

    is_verified: bool = Field(default=False, index=True)
    is_blocked: bool = Field(default=False)
    is_online: bool = Field(default=False, index=True)
    is_available: bool = Field(default=False, index=True)

    assigned_restaurant_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="merchants.id",
        index=True,
    )

    # Cash ledger
    cash_in_hand: float = Field(default=0.0, ge=0)
    max_cash_limit: float = Field(default=1000.0, gt=0)
    is_blocked_due_to_cash: bool = Field(default=False, index=True)

    current_order_id: uuid.UUID | None = Field(default=None)

    fcm_tokens: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    # Last known position (heartbeat)
    last_lat: float | None = Field(default=None)
    last_lng: float | None = Field(default=None)
    location_updated_at: datetime | None = Field(default=None, index=True)

    # Stats
    total_deliveries: int = Field(default=0, ge=0)
    today_deliveries: int = Field(default=0, ge=0)
    today_earnings: float = Field(default=0.0, ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class LedgerEntry(SQLModel, table=True):
    """
    Immutable audit record for cash movements settled at the office.
    Rows are only ever inserted.
    """

    __tablename__ = "ledger_entries"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    type: str = Field(default="debt_liquidation_office", index=True)

    driver_id: uuid.UUID = Field(foreign_key="drivers.id", index=True)

    amount: float
    previous_debt: float
    new_debt: float

    admin_id: uuid.UUID | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
