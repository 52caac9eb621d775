# tests/test_store.py

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, inspect, insert, select, update

from invoicebook.core.errors import SchemaError, StoreUnavailable
from invoicebook.db import schema
from invoicebook.db.engine import get_engine
from invoicebook.db.store import Store
from invoicebook.models.customers import Customer
from invoicebook.models.invoices import Currency, InvoiceStatus

from conftest import make_invoice

pytestmark = pytest.mark.anyio


async def test_put_get_delete(store, customer):
    await store.customers.put(customer)
    loaded = await store.customers.get(customer.id)
    assert loaded == customer

    assert await store.customers.delete(customer.id) is True
    assert await store.customers.get(customer.id) is None
    assert await store.customers.delete(customer.id) is False


async def test_put_rejects_wrong_entity_type(store, profile):
    with pytest.raises(TypeError):
        await store.customers.put(profile)


async def test_replace_keeps_insertion_order(store):
    first = Customer(name="Amaka", phone="08011111111")
    second = Customer(name="Bola", phone="08022222222")
    third = Customer(name="Chidi", phone="08033333333")
    for c in (first, second, third):
        await store.customers.put(c)

    await store.customers.put(first.model_copy(update={"name": "Amaka Eze"}))

    scanned = await store.customers.scan()
    assert [c.id for c in scanned] == [first.id, second.id, third.id]
    assert scanned[0].name == "Amaka Eze"


async def test_scan_filters_and_sort_ties(store, customer):
    await store.customers.put(customer)
    same_day = datetime(2024, 5, 1, 10, 0)
    a = make_invoice(customer.id, issued=same_day, number="INV-0001")
    b = make_invoice(customer.id, issued=datetime(2024, 4, 1), number="INV-0002", currency=Currency.USD)
    c = make_invoice(customer.id, issued=same_day, number="INV-0003", deposit="100")
    for invoice in (a, b, c):
        await store.invoices.put(invoice)

    by_date = await store.invoices.scan(order_by="date_issued")
    assert [i.invoice_number for i in by_date] == ["INV-0002", "INV-0001", "INV-0003"]

    newest = await store.invoices.scan(order_by="date_issued", reverse=True)
    assert [i.invoice_number for i in newest] == ["INV-0001", "INV-0003", "INV-0002"]

    usd = await store.invoices.scan(currency="USD")
    assert [i.id for i in usd] == [b.id]

    paid = await store.invoices.scan(status=InvoiceStatus.PAID)
    assert [i.id for i in paid] == [c.id]

    assert await store.invoices.count(customer_id=customer.id) == 3
    big = await store.invoices.scan(lambda i: i.deposit_amount > 0)
    assert [i.id for i in big] == [c.id]


async def test_scan_rejects_unindexed_field(store):
    with pytest.raises(ValueError):
        await store.invoices.scan(order_by="grand_total")
    with pytest.raises(ValueError):
        await store.invoices.scan(data="x")


async def test_customer_search(store):
    await store.customers.put(Customer(name="Tunde Bakare", phone="08098765432"))
    await store.customers.put(Customer(name="Ngozi Obi", phone="07011112222"))
    await store.customers.put(Customer(name="100% Cotton", phone="09000000000"))

    assert [c.name for c in await store.customers.search("TUNDE")] == ["Tunde Bakare"]
    assert [c.name for c in await store.customers.search("1111")] == ["Ngozi Obi"]
    assert [c.name for c in await store.customers.search("0%")] == ["100% Cotton"]
    assert len(await store.customers.search("  ")) == 3


async def test_profile_is_a_singleton(store, profile):
    assert await store.business_profile.get() is None

    await store.business_profile.put(profile)
    await store.business_profile.put(profile.model_copy(update={"business_name": "Adaeze Print Co"}))

    loaded = await store.business_profile.get()
    assert loaded.business_name == "Adaeze Print Co"
    with store.connect() as conn:
        rows = conn.execute(select(func.count()).select_from(schema.business_profile)).scalar_one()
    assert rows == 1


async def test_operations_before_open_fail(db_url):
    store = Store(get_engine(db_url))
    with pytest.raises(StoreUnavailable):
        await store.customers.get("anything")


async def test_operations_after_close_fail(store, customer):
    store.close()
    with pytest.raises(StoreUnavailable):
        await store.customers.put(customer)


async def test_open_unreachable_database(tmp_path):
    store = Store(get_engine(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}"))
    with pytest.raises(StoreUnavailable):
        await store.open()
    assert not store.is_open


async def test_fresh_database_records_version(store):
    assert store.version == schema.SCHEMA_VERSION
    with store.connect() as conn:
        value = conn.execute(select(schema.schema_meta.c.value)).scalar_one()
    assert value == str(schema.SCHEMA_VERSION)


async def test_newer_schema_version_fails_closed(store, db_url):
    with store.begin() as conn:
        conn.execute(update(schema.schema_meta).values(value="99"))
    store.close()

    reopened = Store(get_engine(db_url))
    with pytest.raises(SchemaError):
        await reopened.open()
    assert not reopened.is_open


async def test_unparseable_record_raises_schema_error(store):
    with store.begin() as conn:
        conn.execute(
            insert(schema.customers).values(id="broken", name="x", phone="1", data="{not json")
        )
    with pytest.raises(SchemaError):
        await store.customers.get("broken")


# ---- Legacy databases ----

LEGACY_DDL = [
    """CREATE TABLE invoices (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id VARCHAR NOT NULL UNIQUE,
        customer_id VARCHAR NOT NULL,
        status VARCHAR NOT NULL,
        date_issued DATETIME NOT NULL,
        is_synced BOOLEAN NOT NULL,
        data TEXT NOT NULL
    )""",
    """CREATE TABLE customers (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id VARCHAR NOT NULL UNIQUE,
        name VARCHAR NOT NULL,
        phone VARCHAR,
        data TEXT NOT NULL
    )""",
    """CREATE TABLE business_profile (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id VARCHAR NOT NULL UNIQUE,
        data TEXT NOT NULL
    )""",
]


def _legacy_database(db_url, invoice_rows, profile=None):
    engine = create_engine(db_url)
    with engine.begin() as conn:
        for ddl in LEGACY_DDL:
            conn.exec_driver_sql(ddl)
        for row in invoice_rows:
            conn.exec_driver_sql(
                "INSERT INTO invoices (id, customer_id, status, date_issued, is_synced, data) "
                "VALUES (?, ?, ?, ?, 0, ?)",
                row,
            )
        if profile is not None:
            conn.exec_driver_sql(
                "INSERT INTO business_profile (id, data) VALUES (?, ?)",
                ("1", profile.model_dump_json()),
            )
    engine.dispose()


async def test_legacy_database_is_migrated(db_url, customer, profile):
    legacy = make_invoice(customer.id, grand_total="100", deposit="40", currency=Currency.GBP)
    assert legacy.payments is None
    _legacy_database(
        db_url,
        [(legacy.id, customer.id, "partial", "2024-03-01 09:00:00", legacy.model_dump_json())],
        profile=profile,
    )

    store = Store(get_engine(db_url))
    await store.open()
    try:
        assert store.version == schema.SCHEMA_VERSION
        [loaded] = await store.invoices.scan(currency="GBP")
        assert loaded.id == legacy.id
        assert loaded.payments is None
        assert loaded.deposit_amount == Decimal("40")

        kept = await store.business_profile.get()
        assert kept.business_name == profile.business_name
    finally:
        store.close()


async def test_failed_migration_leaves_database_untouched(db_url, customer):
    _legacy_database(
        db_url,
        [("bad", customer.id, "pending", "2024-03-01 09:00:00", "{not json")],
    )

    store = Store(get_engine(db_url))
    with pytest.raises(SchemaError):
        await store.open()
    assert not store.is_open

    engine = create_engine(db_url)
    try:
        inspector = inspect(engine)
        columns = {c["name"] for c in inspector.get_columns("invoices")}
        assert "currency" not in columns
        assert "schema_meta" not in inspector.get_table_names()
    finally:
        engine.dispose()
