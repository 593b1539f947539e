# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Delivery order.

    `status` is the single source of truth for the lifecycle position and
    always equals the status of the last `status_history` entry. Both are
    only written by OrderService through a conditional UPDATE.

    Nested sub-documents are JSON columns and are always replaced whole:
      - items:          [{item_id, name, quantity, modifiers, selected_extras,
                          unit_price, subtotal, warning?}]
      - totals:         {subtotal, deliveryFee, serviceFee, discount, total}
      - payment:        {method, status, paidAt, cashCollected}
      - timestamps:     {createdAt, confirmedAt, ..., cancelledAt}
      - status_history: [{status, at, actor, reason?}]   (append-only)
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Human readable number, e.g. ORD-20261019-7QK2ZD",
    )

    client_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    merchant_id: uuid.UUID = Field(
        foreign_key="merchants.id",
        index=True,
    )

    driver_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="drivers.id",
        index=True,
    )

    # created | confirmed | preparing | ready | searching_driver |
    # assigned_to_driver | picked_up | on_the_way | delivered | cancelled
    status: str = Field(
        default="created",
        index=True,
        description="Order status lifecycle",
    )

    items: list[dict] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    totals: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    payment: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    timestamps: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    status_history: list[dict] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    delivery_address: str | None = Field(default=None)
    notes: str | None = Field(default=None)

    cancel_reason: str | None = Field(default=None)
    rating: int | None = Field(default=None)

    # Set by the price/integrity validator
    server_validated: bool = Field(default=False)
    price_manipulated: bool = Field(default=False)
    trust_warning: str | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Last write timestamp (UTC)",
    )
