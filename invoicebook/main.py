# invoicebook/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from invoicebook.api.business import router as business_router
from invoicebook.api.customers import router as customers_router
from invoicebook.api.dashboard import router as dashboard_router
from invoicebook.api.invoices import router as invoices_router
from invoicebook.core.config import settings
from invoicebook.core.errors import (
    InvalidAmount,
    MissingReference,
    StoreError,
    ValidationError,
)
from invoicebook.db.engine import get_engine
from invoicebook.db.store import Store
from invoicebook.services.dashboard import Dashboard

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = None
    app.state.store_error = None
    app.state.dashboard = None

    store = Store(get_engine())
    try:
        await store.open()
    except StoreError as exc:
        # Stay up so /health can say what went wrong; every data route answers 503
        logger.error("Store failed to open, running degraded: %s", exc)
        app.state.store_error = str(exc)
    else:
        app.state.store = store
        app.state.dashboard = await Dashboard(store).watch()

    yield

    if app.state.dashboard is not None:
        app.state.dashboard.close()
    store.close()


app = FastAPI(
    title="Invoicebook",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(ValidationError)
@app.exception_handler(InvalidAmount)
async def unprocessable(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(MissingReference)
async def not_found(request: Request, exc: MissingReference) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_failed(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/health")
def health_check(request: Request):
    store = request.app.state.store
    if store is None:
        return {"status": "degraded", "detail": request.app.state.store_error}
    return {"status": "ok", "schema_version": store.version}


app.include_router(business_router)
app.include_router(customers_router)
app.include_router(invoices_router)
app.include_router(dashboard_router)
