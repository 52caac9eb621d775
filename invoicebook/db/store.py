# invoicebook/db/store.py
"""
Local persistent store.

One keyed collection per entity type (business profile, customers, invoices)
on SQLite. Every put/delete is a single transaction; once it commits, the
store tells the live queries that read that collection to refresh, before the
call returns.

The async methods run their SQLAlchemy calls inline on the event loop; local
SQLite round trips are short enough that nothing is handed to a thread.

Usage:
    store = Store(get_engine())
    await store.open()
    await store.customers.put(customer)
    invoices = await store.invoices.scan(currency="NGN", order_by="date_issued")
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Table, delete, func, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from invoicebook.core.clock import to_utc
from invoicebook.core.errors import SchemaError, StoreUnavailable
from invoicebook.db import schema
from invoicebook.db.live import ChangeFeed, LiveQuery, Reader, record_read
from invoicebook.db.migrations import migrate
from invoicebook.models.business import BusinessProfile
from invoicebook.models.customers import Customer
from invoicebook.models.invoices import Invoice

logger = logging.getLogger(__name__)

# The closed set of records the store persists
E = TypeVar("E", BusinessProfile, Customer, Invoice)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_utc(value)
    return value


class Collection(Generic[E]):
    """Keyed collection of one entity type, stored as JSON plus index columns."""

    def __init__(
        self,
        store: "Store",
        name: str,
        table: Table,
        model: Type[E],
        index: Callable[[E], Dict[str, Any]],
    ) -> None:
        self._store = store
        self.name = name
        self.table = table
        self.model = model
        self._index = index

    # ---- Helpers ----

    def _key(self, entity: E) -> str:
        return entity.id

    def _load(self, data: str) -> E:
        try:
            return self.model.model_validate_json(data)
        except PydanticValidationError as exc:
            raise SchemaError(
                f"Stored {self.name} record does not match the schema: {exc}"
            ) from exc

    def _row(self, entity: E) -> Dict[str, Any]:
        row = {"id": self._key(entity), "data": entity.model_dump_json()}
        row.update({k: _plain(v) for k, v in self._index(entity).items()})
        return row

    def _column(self, name: str):
        if name in ("seq", "data") or name not in self.table.c:
            raise ValueError(f"{self.name} has no index on {name!r}")
        return self.table.c[name]

    # ---- Operations ----

    async def put(self, entity: E) -> E:
        """Insert or replace by id. A replace keeps the original insertion position."""
        if not isinstance(entity, self.model):
            raise TypeError(f"{self.name} stores {self.model.__name__} records only")

        row = self._row(entity)
        stmt = sqlite_insert(self.table).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.table.c.id],
            set_={key: stmt.excluded[key] for key in row if key != "id"},
        )

        with self._store.begin() as conn:
            conn.execute(stmt)

        await self._store.changes.publish(self.name)
        return entity

    async def get(self, entity_id: str) -> Optional[E]:
        record_read(self.name)
        stmt = select(self.table.c.data).where(self.table.c.id == entity_id)

        with self._store.connect() as conn:
            data = conn.execute(stmt).scalar_one_or_none()

        if data is None:
            return None
        return self._load(data)

    async def delete(self, entity_id: str) -> bool:
        with self._store.begin() as conn:
            result = conn.execute(delete(self.table).where(self.table.c.id == entity_id))

        if not result.rowcount:
            return False
        await self._store.changes.publish(self.name)
        return True

    async def scan(
        self,
        predicate: Optional[Callable[[E], bool]] = None,
        *,
        order_by: Optional[str] = None,
        reverse: bool = False,
        **filters: Any,
    ) -> List[E]:
        """
        All records, in insertion order unless `order_by` names an index column.
        Keyword filters are equality lookups on index columns; `predicate` is
        applied to the loaded entities afterwards. Ties keep insertion order.
        """
        record_read(self.name)
        stmt = select(self.table.c.data)

        for column, value in filters.items():
            stmt = stmt.where(self._column(column) == _plain(value))

        seq = self.table.c.seq
        if order_by is None:
            stmt = stmt.order_by(seq.desc() if reverse else seq.asc())
        else:
            key = self._column(order_by)
            stmt = stmt.order_by(key.desc() if reverse else key.asc(), seq.asc())

        with self._store.connect() as conn:
            rows = conn.execute(stmt).scalars().all()

        entities = [self._load(data) for data in rows]
        if predicate is not None:
            entities = [entity for entity in entities if predicate(entity)]
        return entities

    async def count(self, **filters: Any) -> int:
        record_read(self.name)
        stmt = select(func.count()).select_from(self.table)
        for column, value in filters.items():
            stmt = stmt.where(self._column(column) == _plain(value))

        with self._store.connect() as conn:
            return conn.execute(stmt).scalar_one()


class CustomerCollection(Collection[Customer]):
    async def search(self, text: Optional[str]) -> List[Customer]:
        """Case-insensitive match on name, or substring match on phone."""
        text = (text or "").strip()
        if not text:
            return await self.scan()

        record_read(self.name)
        stmt = (
            select(self.table.c.data)
            .where(
                or_(
                    func.lower(self.table.c.name).contains(text.lower(), autoescape=True),
                    self.table.c.phone.contains(text, autoescape=True),
                )
            )
            .order_by(self.table.c.seq)
        )

        with self._store.connect() as conn:
            rows = conn.execute(stmt).scalars().all()
        return [self._load(data) for data in rows]


class _SingletonCollection(Collection[BusinessProfile]):
    def _key(self, entity: BusinessProfile) -> str:
        return schema.PROFILE_KEY


class ProfileCollection:
    """The single business profile, always stored under PROFILE_KEY. No delete."""

    def __init__(self, store: "Store") -> None:
        self._items = _SingletonCollection(
            store,
            "business_profile",
            schema.business_profile,
            BusinessProfile,
            lambda profile: {},
        )
        self.name = self._items.name

    async def get(self) -> Optional[BusinessProfile]:
        return await self._items.get(schema.PROFILE_KEY)

    async def put(self, profile: BusinessProfile) -> BusinessProfile:
        return await self._items.put(profile)


def _customer_index(customer: Customer) -> Dict[str, Any]:
    return {"name": customer.name, "phone": customer.phone}


def _invoice_index(invoice: Invoice) -> Dict[str, Any]:
    return {
        "customer_id": invoice.customer_id,
        "status": invoice.status,
        "currency": invoice.currency,
        "date_issued": invoice.date_issued,
        "is_synced": invoice.is_synced,
    }


class Store:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.changes = ChangeFeed()
        self.version: Optional[int] = None
        self._opened = False

        self.business_profile = ProfileCollection(self)
        self.customers = CustomerCollection(
            self, "customers", schema.customers, Customer, _customer_index
        )
        self.invoices: Collection[Invoice] = Collection(
            self, "invoices", schema.invoices, Invoice, _invoice_index
        )

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> "Store":
        """
        Create or migrate the schema, then accept operations.
        Raises StoreUnavailable if the database cannot be reached and
        SchemaError if it cannot be brought to SCHEMA_VERSION.
        """
        if self._opened:
            return self

        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Could not open the database: {exc}") from exc

        try:
            with conn.begin():
                found = migrate(conn)
        except SchemaError as exc:
            logger.error("Schema check failed: %s", exc)
            raise
        except SQLAlchemyError as exc:
            logger.error("Schema migration failed: %s", exc)
            raise SchemaError(f"Schema migration failed: {exc}") from exc
        finally:
            conn.close()

        self.version = schema.SCHEMA_VERSION
        self._opened = True
        logger.info(
            "Store opened at schema version %s (found version %s)",
            self.version,
            found,
        )
        return self

    def close(self) -> None:
        self.changes.close_all()
        self.engine.dispose()
        self._opened = False

    def _ensure_open(self) -> None:
        if not self._opened:
            raise StoreUnavailable("Store is not open")

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        self._ensure_open()
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Store write failed: {exc}") from exc

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        self._ensure_open()
        try:
            with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Store read failed: {exc}") from exc

    # ---- Live queries ----

    def live(self, read: Reader) -> LiveQuery:
        """Unstarted live query; use with `async with`."""
        return LiveQuery(self, read)

    async def watch(self, read: Reader) -> LiveQuery:
        return await LiveQuery(self, read).start()
