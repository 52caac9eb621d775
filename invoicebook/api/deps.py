# invoicebook/api/deps.py

from fastapi import Request

from invoicebook.core.errors import StoreUnavailable
from invoicebook.db.live import LiveQuery
from invoicebook.db.store import Store


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        detail = getattr(request.app.state, "store_error", None) or "Store is not open"
        raise StoreUnavailable(detail)
    return store


def get_dashboard(request: Request) -> LiveQuery:
    get_store(request)
    return request.app.state.dashboard
