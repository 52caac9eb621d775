# scripts/init_db.py
"""
Create the database, or migrate an existing one, without starting the API.

Usage:
    python scripts/init_db.py
"""

import asyncio
import logging

from invoicebook.core.config import settings
from invoicebook.db.engine import get_engine
from invoicebook.db.store import Store

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> None:
    store = Store(get_engine())
    await store.open()
    try:
        customers = await store.customers.count()
        invoices = await store.invoices.count()
    finally:
        store.close()
    logger.info(
        "Database %s ready at schema version %s (%s customers, %s invoices).",
        settings.DATABASE_URL,
        store.version,
        customers,
        invoices,
    )


if __name__ == "__main__":
    asyncio.run(main())
