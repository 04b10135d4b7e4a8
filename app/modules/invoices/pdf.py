"""
Tirilla PDF de 80 mm para facturas (adjunto de correo y descarga).
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.modules.email.service import format_money
from app.modules.invoices.models import Invoice, InvoiceStatus

logger = logging.getLogger(__name__)

RECEIPT_WIDTH = 80 * mm


class InvoicePDFService:
    """Genera la tirilla de una factura emitida."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_styles()

    def _setup_styles(self):
        self.styles.add(ParagraphStyle(
            name="ReceiptHeader", parent=self.styles["Heading1"],
            fontSize=12, alignment=1, spaceAfter=4,
        ))
        self.styles.add(ParagraphStyle(
            name="ReceiptCenter", parent=self.styles["Normal"],
            fontSize=8, alignment=1, spaceAfter=2,
        ))
        self.styles.add(ParagraphStyle(
            name="ReceiptText", parent=self.styles["Normal"], fontSize=8,
        ))
        self.styles.add(ParagraphStyle(
            name="ReceiptTotal", parent=self.styles["Normal"],
            fontSize=10, alignment=2, fontName="Helvetica-Bold",
        ))

    def _p(self, text, style: str = "ReceiptText") -> Paragraph:
        return Paragraph(escape(str(text or "")), self.styles[style])

    def generate_pdf(self, invoice: Invoice) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=(RECEIPT_WIDTH, letter[1]),
            leftMargin=4 * mm,
            rightMargin=4 * mm,
            topMargin=6 * mm,
            bottomMargin=6 * mm,
            title=f"Factura {invoice.number}",
        )

        elements = [
            self._p(invoice.issuer_name, "ReceiptHeader"),
            self._p(f"NIT {invoice.issuer_nit}", "ReceiptCenter"),
        ]
        for extra in (invoice.issuer_address, invoice.issuer_phone, invoice.issuer_email):
            if extra:
                elements.append(self._p(extra, "ReceiptCenter"))

        elements.append(Spacer(1, 3 * mm))
        elements.append(self._p(f"Factura {invoice.number}", "ReceiptCenter"))
        if invoice.created_at:
            elements.append(self._p(invoice.created_at.strftime("%d/%m/%Y %H:%M"), "ReceiptCenter"))
        if invoice.status == InvoiceStatus.ANULADA:
            elements.append(self._p("ANULADA", "ReceiptHeader"))

        elements.append(Spacer(1, 2 * mm))
        elements.append(self._p(f"Cliente: {invoice.customer_name}"))
        elements.append(self._p(f"NIT/CC: {invoice.customer_nit}"))
        elements.append(Spacer(1, 2 * mm))

        rows = [["Cant", "Descripción", "Total"]]
        for line in invoice.line_items:
            description = line.description
            if line.discount_name:
                description = f"{description} - {line.discount_name}"
            rows.append([
                str(line.quantity),
                Paragraph(escape(description), self.styles["ReceiptText"]),
                format_money(line.total),
            ])

        items_table = Table(rows, colWidths=[9 * mm, 45 * mm, 18 * mm])
        items_table.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("ALIGN", (2, 0), (2, -1), "RIGHT"),
            ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.black),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 1),
            ("RIGHTPADDING", (0, 0), (-1, -1), 1),
        ]))
        elements.append(items_table)
        elements.append(Spacer(1, 3 * mm))

        totals = [
            ["Subtotal", format_money(invoice.subtotal)],
            ["Impuesto", format_money(invoice.tax)],
            ["Total", format_money(invoice.total)],
        ]
        if invoice.tip:
            totals.append(["Propina", format_money(invoice.tip)])
            totals.append(["Total a pagar", format_money(invoice.total_with_tip)])
        totals.append([f"Pago: {invoice.payment_method_display}", format_money(invoice.amount_received)])
        if invoice.change:
            totals.append(["Cambio", format_money(invoice.change)])

        totals_table = Table(totals, colWidths=[45 * mm, 27 * mm])
        totals_table.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ]))
        elements.append(totals_table)
        elements.append(Spacer(1, 4 * mm))
        elements.append(self._p("Gracias por su visita", "ReceiptCenter"))

        doc.build(elements)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.debug(f"PDF generado para factura {invoice.number} ({len(pdf_bytes)} bytes)")
        return pdf_bytes


invoice_pdf_service = InvoicePDFService()
