# invoicebook/db/migrations.py
"""
Versioned, additive schema migrations.

Version 0 means an empty database; version 1 is the layout written before
`schema_meta` existed (no indexed currency, profile stored as "first row").
Every step only adds columns or re-keys rows, never drops data.
"""

import json
import logging
from typing import Callable, Dict

from sqlalchemy import inspect, select, text, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection

from invoicebook.core.errors import SchemaError
from invoicebook.db.schema import (
    PROFILE_KEY,
    SCHEMA_VERSION,
    business_profile,
    invoices,
    metadata,
    schema_meta,
)

logger = logging.getLogger(__name__)

LEGACY_VERSION = 1


def detect_version(conn: Connection) -> int:
    tables = set(inspect(conn).get_table_names())

    if schema_meta.name in tables:
        value = conn.execute(
            select(schema_meta.c.value).where(schema_meta.c.key == "version")
        ).scalar_one_or_none()
        if value is None:
            raise SchemaError("schema_meta has no version entry")
        try:
            return int(value)
        except ValueError:
            raise SchemaError(f"Unreadable schema version {value!r}")

    if invoices.name in tables:
        return LEGACY_VERSION
    return 0


def _write_version(conn: Connection, version: int) -> None:
    stmt = sqlite_insert(schema_meta).values(key="version", value=str(version))
    stmt = stmt.on_conflict_do_update(
        index_elements=[schema_meta.c.key],
        set_={"value": stmt.excluded.value},
    )
    conn.execute(stmt)


# ---- Steps ----

def _to_v2(conn: Connection) -> None:
    """Index invoices by currency and give the business profile its fixed key."""
    columns = {c["name"] for c in inspect(conn).get_columns(invoices.name)}
    if "currency" not in columns:
        conn.execute(text("ALTER TABLE invoices ADD COLUMN currency VARCHAR"))

    rows = conn.execute(select(invoices.c.seq, invoices.c.data)).all()
    for seq, data in rows:
        try:
            currency = json.loads(data).get("currency")
        except json.JSONDecodeError as exc:
            raise SchemaError(f"Invoice row {seq} does not hold valid JSON") from exc
        conn.execute(
            update(invoices).where(invoices.c.seq == seq).values(currency=currency)
        )
    conn.execute(
        text("CREATE INDEX IF NOT EXISTS ix_invoices_currency ON invoices (currency)")
    )

    # The legacy app treated the first profile row as the canonical one
    tables = set(inspect(conn).get_table_names())
    if business_profile.name not in tables:
        return
    keyed = conn.execute(
        select(business_profile.c.seq).where(business_profile.c.id == PROFILE_KEY)
    ).first()
    if keyed is None:
        first_seq = conn.execute(
            select(business_profile.c.seq).order_by(business_profile.c.seq).limit(1)
        ).scalar_one_or_none()
        if first_seq is not None:
            conn.execute(
                update(business_profile)
                .where(business_profile.c.seq == first_seq)
                .values(id=PROFILE_KEY)
            )


MIGRATIONS: Dict[int, Callable[[Connection], None]] = {
    2: _to_v2,
}


def verify(conn: Connection) -> None:
    inspector = inspect(conn)
    tables = set(inspector.get_table_names())

    for table in metadata.sorted_tables:
        if table.name not in tables:
            raise SchemaError(f"Table {table.name!r} is missing")
        found = {c["name"] for c in inspector.get_columns(table.name)}
        missing = sorted(c.name for c in table.columns if c.name not in found)
        if missing:
            raise SchemaError(
                f"Table {table.name!r} is missing columns: {', '.join(missing)}"
            )


def migrate(conn: Connection) -> int:
    """
    Bring the database on `conn` to SCHEMA_VERSION and return the version it
    was found at. Must run inside a transaction; any failure raises SchemaError
    and the caller rolls back.
    """
    found = detect_version(conn)

    if found > SCHEMA_VERSION:
        raise SchemaError(
            f"Database schema version {found} is newer than supported "
            f"version {SCHEMA_VERSION}"
        )

    if found == 0:
        metadata.create_all(conn)
        logger.info("Created schema at version %s", SCHEMA_VERSION)
    elif found < SCHEMA_VERSION:
        for target in range(found + 1, SCHEMA_VERSION + 1):
            logger.info("Migrating schema from version %s to %s", target - 1, target)
            MIGRATIONS[target](conn)
        # Tables introduced after the legacy layout
        metadata.create_all(conn)

    if found != SCHEMA_VERSION:
        _write_version(conn, SCHEMA_VERSION)

    verify(conn)
    return found
