"""Authenticated principal model."""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class Principal(BaseModel):
    """The caller of a lifecycle operation, produced by access control."""

    user_id: str = Field(..., min_length=1, description="Authenticated user identifier")
    role: Role = Field(default=Role.CUSTOMER, description="Caller role")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
