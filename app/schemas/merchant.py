# app/schemas/merchant.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class ModifierOption(SQLModel):
    id: str
    name: str
    price: float = Field(default=0.0, ge=0, description="Additive price delta")


class ModifierGroup(SQLModel):
    """
    Authoritative modifier group of a menu item (e.g. "Size", "Toppings").
    """

    id: str
    name: str
    required: bool = False
    multi_select: bool = False
    options: list[ModifierOption] = []

    def find_option(self, option_id: str) -> ModifierOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class MenuItemCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    description: str | None = None
    price: float = Field(ge=0)
    is_available: bool = True
    modifier_groups: list[ModifierGroup] = []

    @field_validator("name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class MenuItemUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    is_available: bool | None = None
    modifier_groups: list[ModifierGroup] | None = None


class MenuItemRead(SQLModel):
    id: uuid.UUID
    merchant_id: uuid.UUID
    name: str
    description: str | None
    price: float
    is_available: bool
    modifier_groups: list[ModifierGroup]


class MerchantCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    owner_id: uuid.UUID | None = None
    is_open: bool = False
    commission_rate: float = Field(default=0.0, ge=0, le=1)
    delivery_fee: float | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class MerchantRead(SQLModel):
    id: uuid.UUID
    name: str
    owner_id: uuid.UUID | None
    is_open: bool
    commission_rate: float
    delivery_fee: float | None
    created_at: datetime


class MerchantOpenUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    is_open: bool


class PushTokenCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=4096)
