# app/models/merchant.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Merchant(SQLModel, table=True):
    """
    Restaurant on the marketplace.

    Read-only from the order core except for the `is_open` check at
    order-validation time and `fcm_tokens` for new-order alerts.
    """

    __tablename__ = "merchants"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=100, index=True)

    owner_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    is_open: bool = Field(default=False, index=True)

    commission_rate: float = Field(default=0.0, ge=0, le=1)

    # Merchant default delivery fee; platform default applies when null
    delivery_fee: float | None = Field(default=None, ge=0)

    fcm_tokens: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class MenuItem(SQLModel, table=True):
    """
    Authoritative pricing source for one dish.

    `modifier_groups` is stored as JSON and parsed into
    app.schemas.merchant.ModifierGroup before any price is computed:

        [{"id": "size", "name": "Size", "required": true,
          "multi_select": false,
          "options": [{"id": "l", "name": "Large", "price": 15}]}]
    """

    __tablename__ = "menu_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    merchant_id: uuid.UUID = Field(
        foreign_key="merchants.id",
        index=True,
    )

    name: str = Field(max_length=100)

    description: str | None = Field(default=None)

    price: float = Field(ge=0, description="Base unit price")

    is_available: bool = Field(default=True, index=True)

    modifier_groups: list[dict] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
