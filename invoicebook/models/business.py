# invoicebook/models/business.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from invoicebook.core.clock import now
from invoicebook.models.common import blank_to_none

DEFAULT_FOOTER_TEXT = (
    "IMPORTANT: PRODUCTION STARTS ONLY AFTER PAYMENT CONFIRMATION.\n"
    "We do not start work on credit. Thank you for your understanding."
)

# Inline logos are stored as data-URL text; ~2MB of image once decoded
MAX_LOGO_LENGTH = 2 * 1024 * 1024 * 4 // 3


class BusinessProfile(BaseModel):
    business_name: str
    owner_name: Optional[str] = None
    address: str
    phone: str
    email: Optional[EmailStr] = None
    bank_name: str
    account_number: str
    account_name: str
    logo_image: Optional[str] = None
    invoice_footer_text: str = DEFAULT_FOOTER_TEXT
    updated_at: datetime = Field(default_factory=now)

    class Config:
        from_attributes = True


class BusinessProfileIn(BaseModel):
    business_name: str = Field(min_length=2)
    owner_name: Optional[str] = None
    address: str = Field(min_length=5)
    phone: str = Field(min_length=10)
    email: Optional[EmailStr] = None
    bank_name: str = Field(min_length=2)
    account_number: str = Field(min_length=10)
    account_name: str = Field(min_length=2)
    logo_image: Optional[str] = Field(default=None, max_length=MAX_LOGO_LENGTH)
    invoice_footer_text: Optional[str] = None

    class Config:
        str_strip_whitespace = True

    @field_validator("email", "owner_name", "logo_image", "invoice_footer_text", mode="before")
    @classmethod
    def _empty_is_absent(cls, value):
        return blank_to_none(value)

    def to_profile(self) -> BusinessProfile:
        data = self.model_dump(exclude_none=True)
        return BusinessProfile(**data)
