# invoicebook/models/invoices.py

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt, computed_field, model_validator

from invoicebook.core.clock import now
from invoicebook.core.config import settings
from invoicebook.models.common import new_id


class Currency(str, Enum):
    NGN = "NGN"
    USD = "USD"
    GBP = "GBP"
    EUR = "EUR"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"  # declared, never produced by the ledger
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class InvoiceItem(BaseModel):
    id: str = Field(default_factory=new_id)
    description: str
    quantity: PositiveInt
    unit_price: Decimal = Field(ge=0)
    total: Decimal = Decimal("0")

    @model_validator(mode="after")
    def _recompute_total(self):
        # Never trust a supplied total
        self.total = self.quantity * self.unit_price
        return self


class PaymentRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    date: datetime = Field(default_factory=now)
    amount: Decimal = Field(gt=0)
    note: Optional[str] = None

    class Config:
        frozen = True


class Invoice(BaseModel):
    id: str = Field(default_factory=new_id)
    customer_id: str
    invoice_number: str
    items: List[InvoiceItem]

    subtotal: Decimal
    discount: Decimal = Decimal("0")
    discount_rate: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    tax: Decimal = Decimal("0")
    grand_total: Decimal
    # Running total of every payment applied, not just the first deposit
    deposit_amount: Decimal = Decimal("0")
    # None on invoices written before the ledger existed
    payments: Optional[List[PaymentRecord]] = None

    currency: Currency
    status: InvoiceStatus = InvoiceStatus.PENDING
    date_issued: datetime
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    is_synced: bool = False
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    class Config:
        from_attributes = True

    @property
    def balance_due(self) -> Decimal:
        return self.grand_total - self.deposit_amount


# ---- Form payloads ----

class InvoiceItemIn(BaseModel):
    description: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)

    class Config:
        str_strip_whitespace = True


class InvoiceIn(BaseModel):
    customer_id: str = Field(min_length=1)
    invoice_number: Optional[str] = None
    items: List[InvoiceItemIn] = Field(min_length=1)
    discount_rate: Optional[Decimal] = Field(default=None, ge=0)
    discount_type: Optional[DiscountType] = None
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    deposit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    currency: Currency = Field(default_factory=lambda: Currency(settings.DEFAULT_CURRENCY))
    date_issued: Optional[datetime] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        str_strip_whitespace = True

    @model_validator(mode="after")
    def _check_discount(self):
        if self.discount_rate is not None and self.discount_type is None:
            self.discount_type = DiscountType.PERCENTAGE
        if (
            self.discount_type == DiscountType.PERCENTAGE
            and self.discount_rate is not None
            and self.discount_rate > 100
        ):
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class PaymentIn(BaseModel):
    # Optional here so a missing amount reaches the ledger as InvalidAmount
    amount: Optional[Decimal] = None
    note: Optional[str] = None


# ---- Read models ----

class PaymentResult(BaseModel):
    invoice: Invoice
    payment: PaymentRecord
    overpayment: Decimal = Decimal("0")

    @computed_field
    @property
    def is_overpayment(self) -> bool:
        return self.overpayment > 0


class InvoiceRow(BaseModel):
    id: str
    invoice_number: str
    customer_id: str
    customer_name: str
    date_issued: datetime
    due_date: Optional[datetime] = None
    currency: Currency
    status: InvoiceStatus
    grand_total: Decimal
    deposit_amount: Decimal
    balance_due: Decimal


class RecentInvoice(BaseModel):
    id: str
    invoice_number: str
    customer_name: str
    date_issued: datetime
    currency: Currency
    status: InvoiceStatus
    grand_total: Decimal


class DashboardStats(BaseModel):
    currency: Currency
    collected: Decimal
    pending: Decimal
    count: int
    recent: List[RecentInvoice]
