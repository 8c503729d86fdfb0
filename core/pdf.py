"""
Invoice PDF rendering with fpdf2.

One A4 page (more if the item table runs long): owner header, bill-to block,
invoice details, item table, totals, notes and terms. The invoice template
picks the accent colour. Only core PDF fonts are used, so text is reduced to
latin-1.
"""

import logging
from datetime import datetime
from decimal import Decimal

from fpdf import FPDF
from fpdf.enums import MethodReturnValue

from auth.types import User
from core.models import Customer, Invoice, InvoiceTemplate

logger = logging.getLogger(__name__)

ACCENTS = {
    InvoiceTemplate.DEFAULT: (59, 130, 246),
    InvoiceTemplate.MODERN: (16, 185, 129),
    InvoiceTemplate.MINIMAL: (55, 65, 81),
    InvoiceTemplate.PROFESSIONAL: (30, 58, 138),
}

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "EUR ", "GBP": "GBP ", "JPY": "JPY ", "CAD": "CA$", "AUD": "A$"}


def _text(value) -> str:
    """Core fonts only cover latin-1."""
    return str(value).encode("latin-1", "replace").decode("latin-1")


def format_money(amount: Decimal, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(moment: datetime) -> str:
    return f"{moment:%B} {moment.day}, {moment.year}"


def format_rate(rate: Decimal) -> str:
    return f"{rate.normalize():f}"


class InvoicePDF(FPDF):
    """FPDF page with the invoice's accent colour and footer."""

    def __init__(self, invoice: Invoice):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.invoice = invoice
        self.accent = ACCENTS[invoice.template]
        self.set_auto_page_break(auto=True, margin=15)
        self.set_title(_text(f"Invoice {invoice.invoice_number}"))

    def footer(self):
        self.set_y(-12)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 5, _text(f"{self.invoice.invoice_number}  |  Page {self.page_no()}"), align="C")

    def section_title(self, title: str) -> None:
        self.set_font("Helvetica", "B", 11)
        self.set_text_color(*self.accent)
        self.cell(0, 7, _text(title), new_x="LMARGIN", new_y="NEXT")
        self.set_text_color(51, 51, 51)
        self.set_font("Helvetica", "", 10)

    def line_text(self, text: str, height: float = 5) -> None:
        self.cell(0, height, _text(text), new_x="LMARGIN", new_y="NEXT")


def _header(pdf: InvoicePDF, invoice: Invoice, owner: User) -> None:
    pdf.set_font("Helvetica", "B", 20)
    pdf.set_text_color(*pdf.accent)
    pdf.cell(110, 10, _text(owner.name))
    pdf.set_font("Helvetica", "B", 18)
    pdf.cell(0, 10, "INVOICE", align="R", new_x="LMARGIN", new_y="NEXT")

    pdf.set_font("Helvetica", "", 10)
    pdf.set_text_color(102, 102, 102)
    pdf.cell(110, 5, _text(owner.email))
    pdf.set_font("Helvetica", "B", 10)
    pdf.cell(0, 5, _text(invoice.invoice_number), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 5, _text(invoice.status.value.upper()), align="R", new_x="LMARGIN", new_y="NEXT")

    pdf.set_draw_color(*pdf.accent)
    pdf.set_line_width(0.6)
    pdf.line(pdf.l_margin, pdf.get_y() + 2, pdf.w - pdf.r_margin, pdf.get_y() + 2)
    pdf.ln(8)


def _bill_to(pdf: InvoicePDF, invoice: Invoice, customer: Customer) -> None:
    top = pdf.get_y()

    pdf.section_title("Bill To")
    pdf.set_font("Helvetica", "B", 10)
    pdf.line_text(customer.name)
    pdf.set_font("Helvetica", "", 10)
    if customer.company:
        pdf.line_text(customer.company)
    pdf.line_text(customer.email)
    if customer.phone:
        pdf.line_text(customer.phone)

    address = customer.address
    if address.street:
        pdf.line_text(address.street)
    locality = ", ".join(part for part in (address.city, address.state) if part)
    locality = " ".join(part for part in (locality, address.zip_code) if part)
    if locality:
        pdf.line_text(locality)
    if address.country:
        pdf.line_text(address.country)
    if customer.tax_id:
        pdf.line_text(f"Tax ID: {customer.tax_id}")

    left_bottom = pdf.get_y()

    # Details column to the right of the bill-to block
    pdf.set_xy(120, top)
    details = [
        ("Issue Date", format_date(invoice.issue_date)),
        ("Due Date", format_date(invoice.due_date)),
    ]
    if invoice.paid_date:
        details.append(("Paid Date", format_date(invoice.paid_date)))
    details.append(("Currency", invoice.currency))

    pdf.set_font("Helvetica", "B", 11)
    pdf.set_text_color(*pdf.accent)
    pdf.cell(0, 7, "Invoice Details", new_x="LEFT", new_y="NEXT")
    pdf.set_text_color(51, 51, 51)
    for label, value in details:
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(28, 5, _text(f"{label}:"))
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(0, 5, _text(value), new_x="LMARGIN", new_y="NEXT")
        pdf.set_x(120)

    pdf.set_y(max(left_bottom, pdf.get_y()) + 6)


def _items(pdf: InvoicePDF, invoice: Invoice) -> None:
    widths = (95, 20, 35, 40)

    pdf.set_fill_color(*pdf.accent)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font("Helvetica", "B", 10)
    for width, title, align in zip(widths, ("Description", "Qty", "Rate", "Amount"), ("L", "C", "R", "R")):
        pdf.cell(width, 8, title, align=align, fill=True)
    pdf.ln()

    pdf.set_text_color(51, 51, 51)
    pdf.set_font("Helvetica", "", 10)
    pdf.set_draw_color(220, 220, 220)
    pdf.set_line_width(0.2)
    for item in invoice.items:
        description = _text(item.description)
        # Long descriptions wrap; the other columns take the wrapped height
        lines = pdf.multi_cell(widths[0], 7, description, dry_run=True,
                               output=MethodReturnValue.LINES)
        height = 7 * len(lines)
        if pdf.will_page_break(height):
            pdf.add_page()

        pdf.multi_cell(widths[0], 7, description, border="B", new_x="RIGHT", new_y="TOP")
        pdf.cell(widths[1], height, format_rate(item.quantity), border="B", align="C")
        pdf.cell(widths[2], height, format_money(item.rate, invoice.currency), border="B", align="R")
        pdf.cell(widths[3], height, format_money(item.amount, invoice.currency), border="B", align="R",
                 new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)


def _totals(pdf: InvoicePDF, invoice: Invoice) -> None:
    rows = [("Subtotal:", format_money(invoice.subtotal, invoice.currency))]
    if invoice.discount_rate > 0:
        rows.append((
            f"Discount ({format_rate(invoice.discount_rate)}%):",
            "-" + format_money(invoice.discount_amount, invoice.currency),
        ))
    if invoice.tax_rate > 0:
        rows.append((
            f"Tax ({format_rate(invoice.tax_rate)}%):",
            format_money(invoice.tax_amount, invoice.currency),
        ))

    pdf.set_font("Helvetica", "", 10)
    for label, value in rows:
        pdf.cell(130, 6, _text(label), align="R")
        pdf.cell(0, 6, _text(value), align="R", new_x="LMARGIN", new_y="NEXT")

    pdf.set_font("Helvetica", "B", 12)
    pdf.set_text_color(*pdf.accent)
    pdf.cell(130, 8, "Total:", align="R")
    pdf.cell(0, 8, _text(format_money(invoice.total, invoice.currency)), align="R",
             new_x="LMARGIN", new_y="NEXT")
    pdf.set_text_color(51, 51, 51)
    pdf.ln(6)


def _notes(pdf: InvoicePDF, invoice: Invoice) -> None:
    for title, text in (("Notes", invoice.notes), ("Terms & Conditions", invoice.terms)):
        if text:
            pdf.section_title(title)
            pdf.multi_cell(0, 5, _text(text), new_x="LMARGIN", new_y="NEXT")
            pdf.ln(3)


def render_invoice_pdf(invoice: Invoice, owner: User, customer: Customer) -> bytes:
    """
    Render a computed invoice as a PDF document.

    Args:
        invoice: Invoice with totals already computed
        owner: Account issuing the invoice (header)
        customer: Billed customer (bill-to block)

    Returns:
        PDF file content
    """
    pdf = InvoicePDF(invoice)
    pdf.add_page()

    _header(pdf, invoice, owner)
    _bill_to(pdf, invoice, customer)
    _items(pdf, invoice)
    _totals(pdf, invoice)
    _notes(pdf, invoice)

    content = bytes(pdf.output())
    logger.debug("Rendered %s (%d bytes)", invoice.invoice_number, len(content))
    return content
