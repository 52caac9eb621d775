# invoicebook/services/documents.py
"""
Invoice PDF export.

build_invoice_document() takes an immutable snapshot of an
(invoice, business profile, customer) triple; render_invoice_pdf() lays that
snapshot out on A4. Rendering never touches the store, so a payment recorded
while a PDF is being built does not change it, and a cancelled share never
undoes a payment.
"""

import asyncio
import base64
import logging
from decimal import Decimal
from io import BytesIO
from typing import Awaitable, Callable, List, Optional
from xml.sax.saxutils import escape

from pydantic import BaseModel
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from invoicebook.core.errors import MissingReference, ShareCancelled
from invoicebook.db.store import Store
from invoicebook.models.business import DEFAULT_FOOTER_TEXT, BusinessProfile
from invoicebook.models.customers import Customer
from invoicebook.models.invoices import Currency, DiscountType, Invoice, PaymentRecord
from invoicebook.services.ledger import resolve_payment_history

logger = logging.getLogger(__name__)

# share(filename, pdf_bytes); raises ShareCancelled when the user backs out
Share = Callable[[str, bytes], Awaitable[None]]


class InvoiceDocument(BaseModel):
    invoice: Invoice
    business: BusinessProfile
    customer: Customer
    payment_history: List[PaymentRecord]
    balance_due: Decimal
    is_fully_paid: bool
    footer_text: str

    class Config:
        frozen = True

    @property
    def filename(self) -> str:
        return f"{self.invoice.invoice_number}.pdf"


def build_invoice_document(
    invoice: Invoice, business: BusinessProfile, customer: Customer
) -> InvoiceDocument:
    """Snapshot for rendering. Consumes the ledger's figures; status is not re-derived."""
    balance_due = invoice.grand_total - invoice.deposit_amount
    return InvoiceDocument(
        invoice=invoice.model_copy(deep=True),
        business=business.model_copy(deep=True),
        customer=customer.model_copy(deep=True),
        payment_history=resolve_payment_history(invoice),
        balance_due=balance_due,
        is_fully_paid=balance_due <= 0,
        footer_text=business.invoice_footer_text or DEFAULT_FOOTER_TEXT,
    )


async def resolve_invoice_document(store: Store, invoice_id: str) -> InvoiceDocument:
    invoice = await store.invoices.get(invoice_id)
    if invoice is None:
        raise MissingReference("Invoice", invoice_id)

    business = await store.business_profile.get()
    if business is None:
        raise MissingReference("Business profile")

    customer = await store.customers.get(invoice.customer_id)
    if customer is None:
        raise MissingReference("Customer", invoice.customer_id)

    return build_invoice_document(invoice, business, customer)


async def export_invoice(
    store: Store, invoice_id: str, share: Optional[Share] = None
) -> Optional[bytes]:
    """
    Render the invoice and hand it to `share`. Returns the PDF bytes, or None
    when the user cancelled the share.
    """
    document = await resolve_invoice_document(store, invoice_id)
    pdf = await asyncio.to_thread(render_invoice_pdf, document)

    if share is None:
        return pdf
    try:
        await share(document.filename, pdf)
    except ShareCancelled:
        logger.debug("Share of %s cancelled by the user", document.filename)
        return None
    return pdf


# ---- Rendering ----

def _money(currency: Currency, amount: Decimal) -> str:
    return f"{currency.value} {amount:,.2f}"


def _text(value: Optional[str]) -> str:
    return escape(value or "").replace("\n", "<br/>")


def _logo(data_url: str) -> Optional[Image]:
    try:
        raw = base64.b64decode(data_url.split(",", 1)[-1])
        ImageReader(BytesIO(raw)).getSize()
        return Image(BytesIO(raw), width=1.2 * inch, height=1.2 * inch, kind="proportional")
    except Exception as exc:
        logger.warning("Skipping unreadable business logo: %s", exc)
        return None


def render_invoice_pdf(document: InvoiceDocument) -> bytes:
    invoice = document.invoice
    business = document.business
    customer = document.customer
    currency = invoice.currency

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=f"Invoice {invoice.invoice_number}",
    )

    styles = getSampleStyleSheet()
    normal = ParagraphStyle(
        "InvoiceNormal",
        parent=styles["Normal"],
        fontSize=10,
        textColor=colors.HexColor("#374151"),
    )
    label = ParagraphStyle(
        "InvoiceLabel",
        parent=normal,
        fontSize=8,
        textColor=colors.HexColor("#6b7280"),
    )
    right = ParagraphStyle("InvoiceRight", parent=normal, alignment=TA_RIGHT)
    brand = ParagraphStyle(
        "InvoiceBrand",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=colors.HexColor("#1f2937"),
        spaceAfter=4,
    )
    stamp = ParagraphStyle(
        "InvoiceStamp",
        parent=styles["Heading1"],
        fontSize=20,
        textColor=colors.HexColor("#22c55e"),
        alignment=TA_CENTER,
    )
    footer = ParagraphStyle(
        "InvoiceFooter",
        parent=normal,
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER,
    )

    elements = []

    if document.is_fully_paid:
        elements.append(Paragraph("PAID FULLY", stamp))
        elements.append(Spacer(1, 0.1 * inch))

    # Header: business on the left, invoice number and date on the right
    business_block = []
    if business.logo_image:
        logo = _logo(business.logo_image)
        if logo is not None:
            business_block.append(logo)
    business_block.append(Paragraph(_text(business.business_name), brand))
    business_block.append(
        Paragraph(
            "<br/>".join(
                _text(line)
                for line in (business.address, business.phone, business.email)
                if line
            ),
            normal,
        )
    )
    invoice_block = [
        Paragraph("<font size=20 color='#9ca3af'>INVOICE</font>", right),
        Spacer(1, 0.15 * inch),
        Paragraph(f"#{_text(invoice.invoice_number)}", right),
        Spacer(1, 0.15 * inch),
        Paragraph("Date Issued", ParagraphStyle("LabelRight", parent=label, alignment=TA_RIGHT)),
        Paragraph(invoice.date_issued.strftime("%d %b %Y"), right),
    ]
    if invoice.due_date:
        invoice_block.append(
            Paragraph(f"Due {invoice.due_date.strftime('%d %b %Y')}", right)
        )

    header = Table([[business_block, invoice_block]], colWidths=[3.75 * inch, 3 * inch])
    header.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.HexColor("#eeeeee")),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
    ]))
    elements.append(header)
    elements.append(Spacer(1, 0.25 * inch))

    # Bill to / payment instructions
    bill_to = [_text(customer.name), _text(customer.phone)]
    if customer.address:
        bill_to.append(_text(customer.address))
    if customer.city:
        bill_to.append(f"{_text(customer.city)}, {_text(customer.country)}")
    pay_to = [
        f"<b>{_text(business.bank_name)}</b>",
        _text(business.account_number),
        _text(business.account_name),
    ]
    parties = Table(
        [
            [Paragraph("BILL TO", label), Paragraph("PAYMENT INSTRUCTIONS", label)],
            [Paragraph("<br/>".join(bill_to), normal), Paragraph("<br/>".join(pay_to), normal)],
        ],
        colWidths=[3.75 * inch, 3 * inch],
    )
    parties.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.append(parties)
    elements.append(Spacer(1, 0.3 * inch))

    # Items
    rows = [["Item Description", "Qty", "Price", "Total"]]
    for item in invoice.items:
        rows.append([
            Paragraph(_text(item.description), normal),
            str(item.quantity),
            f"{item.unit_price:,.2f}",
            f"{item.total:,.2f}",
        ])
    items_table = Table(rows, colWidths=[3.5 * inch, 0.75 * inch, 1.25 * inch, 1.25 * inch])
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#e5e7eb")),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2 * inch))

    # Totals
    totals = [["Subtotal:", _money(currency, invoice.subtotal)]]
    if invoice.discount > 0:
        rate = ""
        if invoice.discount_type == DiscountType.PERCENTAGE and invoice.discount_rate:
            rate = f" ({invoice.discount_rate}%)"
        totals.append([f"Discount{rate}:", f"- {_money(currency, invoice.discount)}"])
    if invoice.tax > 0:
        totals.append(["Tax:", _money(currency, invoice.tax)])
    totals.append(["Grand Total:", _money(currency, invoice.grand_total)])
    grand_row = len(totals) - 1

    for record in document.payment_history:
        note = f" • {record.note}" if record.note else ""
        totals.append([f"{record.date.strftime('%d %b %Y')}{note}", _money(currency, record.amount)])

    totals.append(["Total Paid:", f"({_money(currency, invoice.deposit_amount)})"])
    totals.append(["Balance Due:", _money(currency, document.balance_due)])

    balance_colour = colors.HexColor("#22c55e") if document.is_fully_paid else colors.HexColor("#f97316")
    totals_table = Table(totals, colWidths=[2.75 * inch, 1.75 * inch], hAlign="RIGHT")
    totals_style = [
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("FONTNAME", (0, grand_row), (-1, grand_row), "Helvetica-Bold"),
        ("LINEABOVE", (0, grand_row), (-1, grand_row), 1, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("TEXTCOLOR", (1, -1), (1, -1), balance_colour),
        ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.HexColor("#eeeeee")),
    ]
    if document.payment_history:
        first, last = grand_row + 1, grand_row + len(document.payment_history)
        totals_style.append(("TEXTCOLOR", (0, first), (0, last), colors.HexColor("#6b7280")))
        totals_style.append(("TEXTCOLOR", (1, first), (1, last), colors.HexColor("#22c55e")))
    if invoice.discount > 0:
        totals_style.append(("TEXTCOLOR", (0, 1), (-1, 1), colors.HexColor("#ef4444")))
    totals_table.setStyle(TableStyle(totals_style))
    elements.append(totals_table)
    elements.append(Spacer(1, 0.4 * inch))

    # Terms
    rule = Table([[Paragraph(_text(document.footer_text), normal)]], colWidths=[6.75 * inch])
    rule.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.5, colors.HexColor("#f97316")),
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#fff7ed")),
        ("TOPPADDING", (0, 0), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
    ]))
    elements.append(rule)
    elements.append(Spacer(1, 0.4 * inch))

    elements.append(
        Paragraph(
            f"Generated by {_text(business.business_name)} • Thank you for your business!",
            footer,
        )
    )

    doc.build(elements)
    return buffer.getvalue()
