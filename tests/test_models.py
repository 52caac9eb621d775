# tests/test_models.py

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from invoicebook.core.errors import ValidationError
from invoicebook.models.business import DEFAULT_FOOTER_TEXT, BusinessProfileIn
from invoicebook.models.common import validate_payload
from invoicebook.models.customers import CustomerIn
from invoicebook.models.invoices import (
    DiscountType,
    InvoiceIn,
    InvoiceItem,
    PaymentRecord,
)

PROFILE_FORM = {
    "business_name": "Adaeze Prints",
    "address": "12 Allen Avenue, Ikeja",
    "phone": "08031234567",
    "bank_name": "GTBank",
    "account_number": "0123456789",
    "account_name": "Adaeze Prints Ltd",
}


def test_item_total_is_recomputed():
    item = InvoiceItem(description="Banner", quantity=3, unit_price=Decimal("250.50"), total=Decimal("1"))
    assert item.total == Decimal("751.50")


def test_item_rejects_zero_quantity():
    with pytest.raises(PydanticValidationError):
        InvoiceItem(description="Banner", quantity=0, unit_price=Decimal("10"))


def test_payment_record_is_immutable():
    record = PaymentRecord(amount=Decimal("10"))
    with pytest.raises(PydanticValidationError):
        record.amount = Decimal("20")


def test_payment_record_needs_positive_amount():
    with pytest.raises(PydanticValidationError):
        PaymentRecord(amount=Decimal("0"))


def test_customer_form_minimum_lengths():
    with pytest.raises(ValidationError):
        validate_payload(CustomerIn, {"name": "A", "phone": "08098765432"})
    with pytest.raises(ValidationError):
        validate_payload(CustomerIn, {"name": "Tunde", "phone": "0809"})


def test_customer_form_blank_email_is_absent():
    form = validate_payload(CustomerIn, {"name": "Tunde", "phone": "08098765432", "email": ""})
    assert form.email is None


def test_international_customer_needs_full_address():
    with pytest.raises(ValidationError, match="city"):
        validate_payload(
            CustomerIn,
            {
                "name": "Jane Doe",
                "phone": "+447700900123",
                "is_international": True,
                "address": "1 High Street",
                "country": "United Kingdom",
            },
        )


def test_customer_update_keeps_identity():
    original = validate_payload(CustomerIn, {"name": "Tunde", "phone": "08098765432"}).to_customer()
    changed = validate_payload(
        CustomerIn, {"name": "Tunde Bakare", "phone": "08098765432"}
    ).to_customer(original)
    assert changed.id == original.id
    assert changed.created_at == original.created_at
    assert changed.name == "Tunde Bakare"


def test_profile_form_uses_default_footer():
    profile = validate_payload(BusinessProfileIn, dict(PROFILE_FORM, invoice_footer_text="  ")).to_profile()
    assert profile.invoice_footer_text == DEFAULT_FOOTER_TEXT


def test_profile_form_account_number_length():
    with pytest.raises(ValidationError):
        validate_payload(BusinessProfileIn, dict(PROFILE_FORM, account_number="12345"))


def test_invoice_form_needs_items():
    with pytest.raises(ValidationError):
        validate_payload(InvoiceIn, {"customer_id": "c1", "items": []})


def test_invoice_form_discount_defaults_to_percentage():
    form = validate_payload(
        InvoiceIn,
        {
            "customer_id": "c1",
            "items": [{"description": "Cards", "quantity": 1, "unit_price": "50"}],
            "discount_rate": "10",
        },
    )
    assert form.discount_type == DiscountType.PERCENTAGE
    assert form.currency.value == "NGN"


def test_invoice_form_rejects_percentage_over_100():
    with pytest.raises(ValidationError):
        validate_payload(
            InvoiceIn,
            {
                "customer_id": "c1",
                "items": [{"description": "Cards", "quantity": 1, "unit_price": "50"}],
                "discount_rate": "150",
                "discount_type": "percentage",
            },
        )
