"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class Plan(str, Enum):
    """Subscription plan. Only the free plan is capped."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class User(BaseModel):
    """An account owning customers and invoices."""

    id: UUID
    email: EmailStr
    name: str
    plan: Plan = Plan.FREE
    invoice_count: int = 0
    max_invoices: int | None = None  # None means unlimited
    is_active: bool = True
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def can_create_invoice(self) -> bool:
        """Whether the owner is still under the plan's invoice limit."""
        return self.max_invoices is None or self.invoice_count < self.max_invoices


class Session(BaseModel):
    """An active user session."""

    token: str = Field(..., description="Session token (opaque string)")
    user_id: UUID
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class MagicLinkRequest(BaseModel):
    """Request payload for magic link."""

    email: EmailStr


class SignupRequest(BaseModel):
    """Request payload for creating an account."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=50)


class ProfileUpdate(BaseModel):
    """Request payload for editing the account. Fields left out are unchanged."""

    name: str | None = Field(None, min_length=2, max_length=50)
    email: EmailStr | None = None


class MagicLinkToken(BaseModel):
    """A magic link token awaiting verification."""

    token: str = Field(..., description="URL-safe token")
    user_id: UUID
    email: EmailStr
    created_at: datetime
    expires_at: datetime
    used: bool  # Required - fail closed, no default


class AuthenticatedUser(BaseModel):
    """User info returned after successful authentication."""

    user: User
    session: Session
