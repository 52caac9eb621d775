# invoicebook/db/schema.py
"""
Physical layout of the three collections.

Each row keeps the whole entity as JSON in `data`; the other columns are
secondary indexes derived from it on every put. `seq` records insertion order
and survives replaces.
"""

from sqlalchemy import (
    MetaData, Table, Column, Integer, String,
    DateTime, Boolean, CheckConstraint, Text
)

SCHEMA_VERSION = 2

PROFILE_KEY = "default"

metadata = MetaData()

schema_meta = Table(
    "schema_meta",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", Text, nullable=False),
)

business_profile = Table(
    "business_profile",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String, nullable=False, unique=True),
    Column("data", Text, nullable=False),
    CheckConstraint(f"id = '{PROFILE_KEY}'", name="ck_business_profile_singleton"),
)

customers = Table(
    "customers",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String, nullable=False, unique=True),
    Column("name", String, nullable=False, index=True),
    Column("phone", String, nullable=True, index=True),
    Column("data", Text, nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String, nullable=False, unique=True),
    Column("customer_id", String, nullable=False, index=True),
    Column("status", String, nullable=False, index=True),
    Column("currency", String, nullable=True, index=True),
    Column("date_issued", DateTime, nullable=False, index=True),
    Column("is_synced", Boolean, nullable=False, default=False, index=True),
    Column("data", Text, nullable=False),
)
