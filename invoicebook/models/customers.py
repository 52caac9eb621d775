# invoicebook/models/customers.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from invoicebook.core.clock import now
from invoicebook.models.common import blank_to_none, new_id


class Customer(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    phone: str
    email: Optional[EmailStr] = None
    is_international: bool = False
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    created_at: datetime = Field(default_factory=now)

    class Config:
        from_attributes = True


class CustomerIn(BaseModel):
    name: str = Field(min_length=2)
    phone: str = Field(min_length=10)
    email: Optional[EmailStr] = None
    is_international: bool = False
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    class Config:
        str_strip_whitespace = True

    @field_validator("email", "address", "city", "country", mode="before")
    @classmethod
    def _empty_is_absent(cls, value):
        return blank_to_none(value)

    @model_validator(mode="after")
    def _international_needs_address(self):
        if self.is_international:
            missing = [
                field
                for field in ("address", "city", "country")
                if getattr(self, field) is None
            ]
            if missing:
                raise ValueError(
                    "International customers need " + ", ".join(missing)
                )
        return self

    def to_customer(self, existing: Optional[Customer] = None) -> Customer:
        """New customer, or `existing` updated in place (same id and created_at)."""
        data = self.model_dump()
        if existing is None:
            return Customer(**data)
        return existing.model_copy(update=data)
