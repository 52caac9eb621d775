# invoicebook/api/invoices.py

import asyncio
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response

from invoicebook.api.deps import get_store
from invoicebook.db.store import Store
from invoicebook.models.invoices import (
    Currency,
    Invoice,
    InvoiceIn,
    InvoiceRow,
    InvoiceStatus,
    PaymentIn,
    PaymentRecord,
    PaymentResult,
)
from invoicebook.services.dashboard import Dashboard
from invoicebook.services.documents import render_invoice_pdf, resolve_invoice_document
from invoicebook.services.ledger import Ledger

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _attachment(filename: str) -> str:
    # Header values go out as latin-1; keep a plain ASCII name and carry the
    # real one as RFC 5987 UTF-8
    fallback = "".join(
        ch for ch in filename if 32 <= ord(ch) < 127 and ch not in '"\\'
    )
    fallback = fallback or "invoice.pdf"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.get("", response_model=List[InvoiceRow])
async def list_invoices(
    status: Optional[InvoiceStatus] = Query(default=None),
    customer_id: Optional[str] = Query(default=None),
    currency: Optional[Currency] = Query(default=None),
    store: Store = Depends(get_store),
) -> List[InvoiceRow]:
    """
    Newest invoices first, with customer names and balance due.
    """
    filters = {
        "status": status,
        "customer_id": customer_id,
        "currency": currency,
    }
    return await Dashboard(store).invoice_rows(
        **{key: value for key, value in filters.items() if value is not None}
    )


@router.post("", response_model=Invoice, status_code=201)
async def create_invoice(payload: InvoiceIn, store: Store = Depends(get_store)) -> Invoice:
    return await Ledger(store).create_invoice(payload)


@router.get("/{invoice_id}", response_model=Invoice)
async def get_invoice(invoice_id: str, store: Store = Depends(get_store)) -> Invoice:
    return await Ledger(store).invoice(invoice_id)


@router.get("/{invoice_id}/payments", response_model=List[PaymentRecord])
async def list_payments(
    invoice_id: str, store: Store = Depends(get_store)
) -> List[PaymentRecord]:
    """
    Payment history, oldest first. Invoices from before the ledger existed
    show their deposit as a single "Initial Deposit" entry.
    """
    return await Ledger(store).payment_history(invoice_id)


@router.post("/{invoice_id}/payments", response_model=PaymentResult)
async def record_payment(
    invoice_id: str, payload: PaymentIn, store: Store = Depends(get_store)
) -> PaymentResult:
    return await Ledger(store).apply_payment(invoice_id, payload.amount, note=payload.note)


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(invoice_id: str, store: Store = Depends(get_store)) -> Response:
    document = await resolve_invoice_document(store, invoice_id)
    pdf = await asyncio.to_thread(render_invoice_pdf, document)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": _attachment(document.filename)},
    )
