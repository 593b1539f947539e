# app/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

# App-level roles. "guest" = no token, "system" = backend itself; neither is stored.
Role = Literal["client", "merchant", "driver", "admin"]


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: EmailStr
    name: str
    role: Role
    merchant_id: uuid.UUID | None
    trust_score: int
    total_orders: int
    cancelled_orders: int
    is_blocked: bool
    created_at: datetime


class UserUpdate(SQLModel):
    """
    Partial profile update for authenticated users.
    Only editable field is `name` here.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class DriverOnboarding(SQLModel):
    """Initial driver profile captured by the admin form."""

    model_config = ConfigDict(extra="forbid")

    display_name: str | None = Field(default=None, max_length=100)
    phone: str | None = None
    vehicle: str | None = None
    assigned_restaurant_id: uuid.UUID | None = None
    max_cash_limit: float | None = Field(default=None, gt=0)


class RoleUserCreate(SQLModel):
    """
    Admin payload to provision an account with a given role.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=6)
    display_name: str | None = Field(default=None, max_length=50)
    role: Role
    merchant_id: uuid.UUID | None = None
    driver_data: DriverOnboarding | None = None

    @model_validator(mode="after")
    def merchant_staff_need_merchant(self) -> "RoleUserCreate":
        if self.role == "merchant" and self.merchant_id is None:
            raise ValueError("merchant_id is required for role 'merchant'")
        return self


class RoleUserCreated(SQLModel):
    success: bool
    uid: uuid.UUID
    message: str
