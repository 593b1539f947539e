# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Persistent user profile.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "client" | "merchant" | "driver" | "admin"
      - merchant staff carry the merchant they work for in `merchant_id`.

    This table is *not* responsible for password hashes. Supabase Auth
    stores the password in its own schema. We only mirror identity,
    name, application role and the client reputation counters.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    name: str = Field(
        max_length=50,
        description="Display name; first part of email by default",
    )

    # Application role (not Supabase RLS role)
    role: str = Field(
        default="client",
        index=True,
        description="Application role: client | merchant | driver | admin",
    )

    merchant_id: uuid.UUID | None = Field(
        default=None,
        index=True,
        description="Merchant this account operates (role=merchant only)",
    )

    # Reputation gate for cash-on-delivery
    trust_score: int = Field(default=100)

    total_orders: int = Field(default=0, ge=0)
    cancelled_orders: int = Field(default=0, ge=0)
    last_order_at: datetime | None = Field(default=None)

    is_blocked: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
