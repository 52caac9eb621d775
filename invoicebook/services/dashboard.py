# invoicebook/services/dashboard.py
"""Dashboard figures, always recomputed from the full invoice set. Nothing here is cached."""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from invoicebook.core.clock import to_utc
from invoicebook.core.config import settings
from invoicebook.db.live import LiveQuery
from invoicebook.db.store import Store
from invoicebook.models.customers import Customer
from invoicebook.models.invoices import (
    Currency,
    DashboardStats,
    Invoice,
    InvoiceRow,
    InvoiceStatus,
    RecentInvoice,
)

UNKNOWN_CUSTOMER = "Unknown"


def collected_contribution(invoice: Invoice) -> Decimal:
    """Cash in hand for one invoice: the full total once paid, else what was deposited."""
    if invoice.status == InvoiceStatus.PAID:
        return invoice.grand_total
    return invoice.deposit_amount


def summarize(
    invoices: Iterable[Invoice],
    customers: Iterable[Customer],
    currency: Union[Currency, str],
    recent_limit: Optional[int] = None,
) -> DashboardStats:
    currency = Currency(currency)
    names = {customer.id: customer.name for customer in customers}
    selected = [invoice for invoice in invoices if invoice.currency == currency]

    collected = Decimal("0")
    pending = Decimal("0")
    for invoice in selected:
        cash_in = collected_contribution(invoice)
        collected += cash_in
        pending += invoice.grand_total - cash_in

    limit = settings.RECENT_ACTIVITY_LIMIT if recent_limit is None else recent_limit
    # sorted() is stable, so equal dates keep insertion order
    newest = sorted(selected, key=lambda invoice: to_utc(invoice.date_issued), reverse=True)

    recent = [
        RecentInvoice(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_name=names.get(invoice.customer_id, UNKNOWN_CUSTOMER),
            date_issued=invoice.date_issued,
            currency=invoice.currency,
            status=invoice.status,
            grand_total=invoice.grand_total,
        )
        for invoice in newest[:limit]
    ]

    return DashboardStats(
        currency=currency,
        collected=collected,
        pending=pending,
        count=len(selected),
        recent=recent,
    )


def join_customer_names(
    invoices: Iterable[Invoice], customers: Iterable[Customer]
) -> List[InvoiceRow]:
    names = {customer.id: customer.name for customer in customers}
    return [
        InvoiceRow(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            customer_name=names.get(invoice.customer_id, UNKNOWN_CUSTOMER),
            date_issued=invoice.date_issued,
            due_date=invoice.due_date,
            currency=invoice.currency,
            status=invoice.status,
            grand_total=invoice.grand_total,
            deposit_amount=invoice.deposit_amount,
            balance_due=invoice.balance_due,
        )
        for invoice in invoices
    ]


class Dashboard:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def stats(self, currency: Union[Currency, str]) -> DashboardStats:
        invoices = await self.store.invoices.scan()
        customers = await self.store.customers.scan()
        return summarize(invoices, customers, currency)

    @staticmethod
    async def _every_currency(store: Store) -> Dict[Currency, DashboardStats]:
        invoices = await store.invoices.scan()
        customers = await store.customers.scan()
        return {
            currency: summarize(invoices, customers, currency)
            for currency in Currency
        }

    async def watch(self) -> LiveQuery:
        """Live mapping of every currency to its stats, refreshed on invoice or customer writes."""
        return await self.store.watch(self._every_currency)

    async def invoice_rows(self, **filters: Any) -> List[InvoiceRow]:
        """Newest first, with customer names resolved."""
        invoices = await self.store.invoices.scan(reverse=True, **filters)
        customers = await self.store.customers.scan()
        return join_customer_names(invoices, customers)
