# invoicebook/db/engine.py

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from invoicebook.core.config import settings


def _transactional_sqlite(engine: Engine) -> None:
    # pysqlite only opens a transaction before DML; take over BEGIN so that
    # migration DDL is rolled back together with everything else
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine(url: Optional[str] = None) -> Engine:
    # echo=True if you want to see SQL printed in the terminal
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        engine = create_engine(url, future=True, connect_args={"check_same_thread": False})
        _transactional_sqlite(engine)
        return engine
    return create_engine(url, future=True)
