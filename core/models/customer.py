"""Customer (bill-to party) domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class Address(BaseModel):
    """Postal address. Every part is optional."""

    street: str | None = Field(None, max_length=200)
    city: str | None = Field(None, max_length=50)
    state: str | None = Field(None, max_length=50)
    zip_code: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=50)

    @property
    def is_empty(self) -> bool:
        return not any([self.street, self.city, self.state, self.zip_code, self.country])


class CustomerCreate(BaseModel):
    """Data required to create a customer."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(None, max_length=20)
    company: str | None = Field(None, max_length=100)
    tax_id: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=500)
    address: Address = Field(default_factory=Address)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class CustomerUpdate(BaseModel):
    """Data that can be updated on a customer. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    company: str | None = Field(None, max_length=100)
    tax_id: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=500)
    address: Address | None = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value


class Customer(BaseModel):
    """Full customer entity as stored."""

    id: UUID
    user_id: UUID
    name: str
    email: str
    phone: str | None = None
    company: str | None = None
    tax_id: str | None = None
    notes: str | None = None
    address: Address = Field(default_factory=Address)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        """Name with company, for headers and emails."""
        if self.company:
            return f"{self.name} ({self.company})"
        return self.name
