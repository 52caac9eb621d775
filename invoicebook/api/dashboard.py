# invoicebook/api/dashboard.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from invoicebook.api.deps import get_dashboard
from invoicebook.core.config import settings
from invoicebook.db.live import LiveQuery
from invoicebook.models.invoices import Currency, DashboardStats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardStats)
def dashboard_stats(
    currency: Optional[Currency] = Query(
        default=None,
        description="Defaults to the configured DEFAULT_CURRENCY",
    ),
    live: LiveQuery = Depends(get_dashboard),
) -> DashboardStats:
    """
    Collected and pending totals, invoice count and recent activity for one
    currency. Served from the live query, so it reflects every committed write.
    """
    currency = currency or Currency(settings.DEFAULT_CURRENCY)
    if live.error is not None:
        # Last refresh failed; the held value no longer reflects the store
        raise HTTPException(status_code=503, detail=f"Dashboard is stale: {live.error}")
    if live.value is None:
        raise HTTPException(status_code=503, detail="Dashboard is not ready")
    return live.value[currency]
