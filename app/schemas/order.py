# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "created",
    "confirmed",
    "preparing",
    "ready",
    "searching_driver",
    "assigned_to_driver",
    "picked_up",
    "on_the_way",
    "delivered",
    "cancelled",
]
PaymentMethod = Literal["cash", "digital"]


class SelectedOption(SQLModel):
    """An option the client picked inside a modifier group."""

    id: str
    name: str | None = None
    # Client-side price; ignored by the server recomputation
    price: float | None = None


class SelectedModifierGroup(SQLModel):
    group_id: str
    selected: list[SelectedOption] = []


class LegacyExtra(SQLModel):
    """
    Deprecated flat "extras" format, still sent by older clients.
    Priced as-is (there is no authoritative extras table).
    """

    name: str | None = None
    price: float = 0.0


class OrderItemCreate(SQLModel):
    """
    One submitted line. `subtotal` is the client-declared line total and
    is only used to detect tampering (or, for unknown items, as fallback).
    """

    item_id: uuid.UUID
    name: str | None = None
    quantity: int = Field(default=1, ge=1)
    modifiers: list[SelectedModifierGroup] = []
    selected_extras: list[LegacyExtra] = []
    unit_price: float | None = None
    subtotal: float = Field(default=0.0, ge=0)


class OrderCreate(SQLModel):
    """
    Payload for checkout.

    Client provides:
      - merchant, items, payment method, delivery address, notes
      - delivery_fee / service_fee / discount as displayed in the cart

    Backend derives:
      - client_id from token
      - order_number, status='created', statusHistory, timestamps
      - authoritative unit prices, subtotals and totals
    """

    model_config = ConfigDict(extra="forbid")

    merchant_id: uuid.UUID
    items: list[OrderItemCreate] = Field(min_length=1)
    payment_method: PaymentMethod
    delivery_address: str
    notes: str | None = None
    delivery_fee: float | None = Field(default=None, ge=0)
    service_fee: float | None = Field(default=None, ge=0)
    discount: float = Field(default=0.0, ge=0)

    @field_validator("delivery_address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Full order view. Nested documents are returned as stored.
    """

    id: uuid.UUID
    order_number: str
    client_id: uuid.UUID
    merchant_id: uuid.UUID
    driver_id: uuid.UUID | None
    status: OrderStatus
    items: list[dict]
    totals: dict
    payment: dict
    timestamps: dict
    status_history: list[dict]
    delivery_address: str | None
    notes: str | None
    cancel_reason: str | None
    rating: int | None
    server_validated: bool
    price_manipulated: bool
    trust_warning: str | None
    created_at: datetime
    updated_at: datetime


class OrderStatusUpdate(SQLModel):
    """
    Payload to request a lifecycle transition.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class OrderCancel(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=300)


class CashPaymentCreate(SQLModel):
    """Amount of cash the driver actually received at the door."""

    model_config = ConfigDict(extra="forbid")

    amount: float = Field(gt=0)


class OrderRatingCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    rating: int = Field(ge=1, le=5)
