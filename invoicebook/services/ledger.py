# invoicebook/services/ledger.py
"""Invoice composition and payment ledger. Status is always derived, never set."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Union

from invoicebook.core.clock import now
from invoicebook.core.errors import InvalidAmount, MissingReference, ValidationError
from invoicebook.db.store import Store
from invoicebook.models.common import validate_payload
from invoicebook.models.invoices import (
    DiscountType,
    Invoice,
    InvoiceIn,
    InvoiceItem,
    InvoiceStatus,
    PaymentRecord,
    PaymentResult,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
INITIAL_DEPOSIT_NOTE = "Initial Deposit"


# ---- Pure rules ----

def derive_status(deposit_amount: Decimal, grand_total: Decimal) -> InvoiceStatus:
    if deposit_amount >= grand_total:
        return InvoiceStatus.PAID
    if deposit_amount > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.PENDING


def resolve_payment_history(invoice: Invoice) -> List[PaymentRecord]:
    """
    The invoice's ledger, oldest first.

    Invoices written before the ledger existed carry a deposit but no records.
    For those, one "Initial Deposit" record for the whole deposit, dated at
    issue, is synthesized. Its id is derived from the invoice id, so repeated
    calls give equal results; nothing is written to the store here.
    """
    if invoice.payments:
        return list(invoice.payments)
    if invoice.deposit_amount > 0:
        return [
            PaymentRecord(
                id=f"{invoice.id}-initial-deposit",
                date=invoice.date_issued,
                amount=invoice.deposit_amount,
                note=INITIAL_DEPOSIT_NOTE,
            )
        ]
    return []


def parse_amount(amount: Any) -> Decimal:
    if amount is None:
        raise InvalidAmount("Payment amount is required")
    if isinstance(amount, bool):
        raise InvalidAmount(f"Payment amount {amount!r} is not a number")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Payment amount {amount!r} is not a number")
    if not value.is_finite() or value <= 0:
        raise InvalidAmount("Payment amount must be greater than zero")
    return value


def compute_totals(
    items: Sequence[InvoiceItem],
    discount_rate: Optional[Decimal] = None,
    discount_type: Optional[DiscountType] = None,
    tax: Decimal = ZERO,
) -> Dict[str, Decimal]:
    """Subtotal, discount and grand total for a set of items.

    Args:
        discount_rate: percent of the subtotal, or a flat amount when
            discount_type is FIXED
        tax: flat amount added after the discount

    Returns:
        dict with subtotal, discount, tax, grand_total
    """
    subtotal = sum((item.total for item in items), ZERO)

    discount = ZERO
    if discount_rate:
        if discount_type == DiscountType.FIXED:
            discount = Decimal(discount_rate)
        else:
            discount = (subtotal * Decimal(discount_rate) / 100).quantize(
                CENT, rounding=ROUND_HALF_UP
            )
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed the subtotal")

    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": Decimal(tax),
        "grand_total": subtotal - discount + Decimal(tax),
    }


# ---- Ledger ----

class Ledger:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def invoice(self, invoice_id: str) -> Invoice:
        invoice = await self.store.invoices.get(invoice_id)
        if invoice is None:
            raise MissingReference("Invoice", invoice_id)
        return invoice

    async def _next_invoice_number(self) -> str:
        count = await self.store.invoices.count()
        return f"INV-{count + 1:04d}"

    async def create_invoice(self, payload: Union[InvoiceIn, Dict[str, Any]]) -> Invoice:
        """
        Compose and persist a new invoice. A deposit taken at creation becomes
        the first ledger record, so deposit_amount and the ledger agree from
        the start.
        """
        data = validate_payload(InvoiceIn, payload)

        customer = await self.store.customers.get(data.customer_id)
        if customer is None:
            raise MissingReference("Customer", data.customer_id)

        items = [
            InvoiceItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in data.items
        ]
        totals = compute_totals(items, data.discount_rate, data.discount_type, data.tax)

        stamp = now()
        payments: List[PaymentRecord] = []
        if data.deposit_amount > 0:
            payments.append(
                PaymentRecord(date=stamp, amount=data.deposit_amount, note=INITIAL_DEPOSIT_NOTE)
            )
        deposit = sum((p.amount for p in payments), ZERO)

        invoice = Invoice(
            customer_id=customer.id,
            invoice_number=data.invoice_number or await self._next_invoice_number(),
            items=items,
            discount_rate=data.discount_rate,
            discount_type=data.discount_type,
            deposit_amount=deposit,
            payments=payments,
            currency=data.currency,
            status=derive_status(deposit, totals["grand_total"]),
            date_issued=data.date_issued or stamp,
            due_date=data.due_date,
            notes=data.notes,
            created_at=stamp,
            updated_at=stamp,
            **totals,
        )

        if deposit > invoice.grand_total:
            logger.warning(
                "Invoice %s created with a deposit above its total (%s > %s)",
                invoice.invoice_number,
                deposit,
                invoice.grand_total,
            )

        await self.store.invoices.put(invoice)
        logger.info(
            "Created invoice %s for customer %s: %s %s (%s)",
            invoice.invoice_number,
            customer.id,
            invoice.currency.value,
            invoice.grand_total,
            invoice.status.value,
        )
        return invoice

    async def apply_payment(
        self,
        invoice_id: str,
        amount: Any,
        note: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> PaymentResult:
        """
        Append one payment, recompute deposit_amount and status, and persist the
        whole invoice in a single write. Overpayment is allowed; the excess is
        reported on the result, not capped.

        Raises:
            InvalidAmount: amount missing, not a number, or not positive
            MissingReference: no invoice with that id
        """
        value = parse_amount(amount)
        invoice = await self.invoice(invoice_id)

        history = resolve_payment_history(invoice)
        record = PaymentRecord(
            date=when or now(),
            amount=value,
            note=(note or "").strip() or None,
        )
        deposit = invoice.deposit_amount + value

        updated = invoice.model_copy(
            update={
                "payments": history + [record],
                "deposit_amount": deposit,
                "status": derive_status(deposit, invoice.grand_total),
                "updated_at": now(),
            }
        )

        # Only the part of this payment that lands beyond the total
        overpayment = min(value, max(deposit - invoice.grand_total, ZERO))
        if overpayment > 0:
            logger.warning(
                "Payment on invoice %s exceeds the balance by %s %s",
                invoice.invoice_number,
                overpayment,
                invoice.currency.value,
            )

        await self.store.invoices.put(updated)
        logger.info(
            "Recorded payment of %s %s on invoice %s (%s -> %s)",
            invoice.currency.value,
            value,
            invoice.invoice_number,
            invoice.status.value,
            updated.status.value,
        )
        return PaymentResult(invoice=updated, payment=record, overpayment=overpayment)

    async def payment_history(self, invoice_id: str) -> List[PaymentRecord]:
        return resolve_payment_history(await self.invoice(invoice_id))
