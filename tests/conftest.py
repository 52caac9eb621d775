# tests/conftest.py

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from invoicebook.core.config import settings
from invoicebook.db.engine import get_engine
from invoicebook.db.store import Store
from invoicebook.models.business import BusinessProfile
from invoicebook.models.customers import Customer
from invoicebook.models.invoices import Currency, Invoice, InvoiceItem, InvoiceStatus


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'invoicebook.sqlite'}"


@pytest.fixture
async def store(db_url):
    store = Store(get_engine(db_url))
    await store.open()
    yield store
    store.close()


@pytest.fixture
def client(db_url, monkeypatch):
    from invoicebook.main import app

    monkeypatch.setattr(settings, "DATABASE_URL", db_url)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def profile():
    return BusinessProfile(
        business_name="Adaeze Prints",
        owner_name="Adaeze Okafor",
        address="12 Allen Avenue, Ikeja",
        phone="08031234567",
        email="hello@adaezeprints.ng",
        bank_name="GTBank",
        account_number="0123456789",
        account_name="Adaeze Prints Ltd",
    )


@pytest.fixture
def customer():
    return Customer(name="Tunde Bakare", phone="08098765432")


def make_invoice(
    customer_id: str,
    grand_total: str = "100",
    deposit: str = "0",
    currency: Currency = Currency.NGN,
    payments=None,
    issued: datetime = datetime(2024, 3, 1, 9, 0),
    number: str = "INV-0001",
) -> Invoice:
    """Hand-built invoice with a single line, written straight to the store in tests."""
    total = Decimal(grand_total)
    paid = Decimal(deposit)
    if paid >= total:
        status = InvoiceStatus.PAID
    elif paid > 0:
        status = InvoiceStatus.PARTIAL
    else:
        status = InvoiceStatus.PENDING
    return Invoice(
        customer_id=customer_id,
        invoice_number=number,
        items=[InvoiceItem(description="Flyers", quantity=1, unit_price=total)],
        subtotal=total,
        grand_total=total,
        deposit_amount=paid,
        payments=payments,
        currency=currency,
        status=status,
        date_issued=issued,
    )
