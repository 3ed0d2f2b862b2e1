"""
CSV and PDF export of the wallet, and the per-receipt QR "digital pass".

The PDF uses reportlab's built-in Helvetica, which has no rupee glyph,
so amounts are labelled "Rs." there.
"""

import csv
import io
import json
from xml.sax.saxutils import escape
from datetime import date
from decimal import Decimal
from typing import Optional

import qrcode
import structlog
from qrcode.constants import ERROR_CORRECT_H
from qrcode.exceptions import DataOverflowError
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from receiptwise.insights.analytics import spending_by_display_category, total_spent
from receiptwise.models.receipt import Receipt


logger = structlog.get_logger(__name__)


CSV_COLUMNS = [
    "id",
    "date",
    "vendor",
    "category",
    "wallet",
    "total_amount",
    "is_fraudulent",
    "fraudulent_details",
    "items",
]


def _items_cell(receipt: Receipt) -> str:
    return "; ".join(f"{item.name} ({item.price})" for item in receipt.line_items)


def export_csv(receipts: list[Receipt]) -> str:
    """One row per receipt, header first, in the order given."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for r in receipts:
        writer.writerow([
            r.id,
            r.purchase_date.isoformat() if r.purchase_date else "",
            r.vendor,
            r.category,
            r.wallet.value,
            str(r.total_amount),
            "yes" if r.is_fraudulent else "no",
            r.fraudulent_details,
            _items_cell(r),
        ])
    return buf.getvalue()


def _money(amount: Decimal, currency_label: str) -> str:
    return f"{currency_label}{amount:,.2f}"


def export_pdf(
    receipts: list[Receipt],
    title: str = "Receipt Report",
    generated_on: Optional[date] = None,
    currency_label: str = "Rs. ",
) -> bytes:
    """
    Render a receipt table with a total row and a per-category summary.

    Returns the PDF document as bytes.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        rightMargin=36,
        leftMargin=36,
        topMargin=48,
        bottomMargin=36,
        title=title,
    )
    styles = getSampleStyleSheet()
    story = [Paragraph(escape(title), styles["Title"])]
    if generated_on is not None:
        story.append(Paragraph(f"Generated on {generated_on.isoformat()}", styles["Normal"]))
    story.append(Spacer(1, 12))

    if not receipts:
        story.append(Paragraph("No receipts to report.", styles["Normal"]))
        doc.build(story)
        return buf.getvalue()

    total = total_spent(receipts)

    rdata = [["Date", "Vendor", "Category", "Wallet", "Amount"]]
    for r in receipts:
        vendor = r.vendor if not r.is_fraudulent else f"{r.vendor} (flagged)"
        rdata.append([
            r.purchase_date.isoformat() if r.purchase_date else "-",
            Paragraph(escape(vendor), styles["BodyText"]),
            r.category,
            r.wallet.value,
            _money(r.total_amount, currency_label),
        ])
    rdata.append(["", "", "", "Total:", _money(total, currency_label)])

    rtable = Table(rdata, colWidths=[70, 170, 90, 70, 90], repeatRows=1)
    rtable.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("ALIGN", (-1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
    ]))
    story.append(rtable)
    story.append(Spacer(1, 12))

    by_category = spending_by_display_category(receipts)
    if len(by_category) > 1:
        story.append(Paragraph("Summary by Category", styles["Heading3"]))
        story.append(Spacer(1, 6))
        cdata = [["Category", "Total", "Share"]]
        for entry in by_category:
            cdata.append([
                entry.category.value,
                _money(entry.total, currency_label),
                f"{entry.share:.0f}%",
            ])
        cdata.append(["Grand Total", _money(total, currency_label), ""])
        ctable = Table(cdata, colWidths=[200, 100, 60])
        ctable.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
        ]))
        story.append(ctable)

    doc.build(story)
    return buf.getvalue()


def receipt_qr_payload(receipt: Receipt) -> str:
    """JSON encoded in a receipt's QR code: vendor, date, total and items."""
    return json.dumps(
        {
            "vendor": receipt.vendor,
            "date": receipt.purchase_date.isoformat() if receipt.purchase_date else None,
            "totalAmount": float(receipt.total_amount),
            "items": ", ".join(
                f"{item.name}: {item.price:.2f}" for item in receipt.line_items
            ),
        },
        ensure_ascii=False,
    )


def receipt_qr_png(receipt: Receipt) -> Optional[bytes]:
    """
    Render the receipt as a QR code PNG for quick returns or sharing.

    Returns None when the data cannot be encoded.
    """
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, border=1)
    try:
        qr.add_data(receipt_qr_payload(receipt))
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        logger.warning("qr_code_failed", receipt_id=receipt.id, error=str(e))
        return None

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
