"""
Tests for CSV and PDF export and the receipt QR code.
"""

import csv
import io
import json
import pytest
from datetime import date
from decimal import Decimal

from PIL import Image

from receiptwise.export import (
    CSV_COLUMNS,
    export_csv,
    export_pdf,
    receipt_qr_payload,
    receipt_qr_png,
)
from receiptwise.models.receipt import LineItem, Receipt, Wallet


def _receipts():
    return [
        Receipt(
            id="r1",
            vendor="Big Bazaar",
            total_amount=Decimal("1250.50"),
            purchase_date=date(2024, 7, 15),
            category="Groceries",
            line_items=[
                LineItem(name="Rice", price=Decimal("800")),
                LineItem(name="Dal", price=Decimal("450.50")),
            ],
        ),
        Receipt(
            id="r2",
            vendor="Zomato <Online>",
            total_amount=Decimal("450"),
            category="Dining",
            wallet=Wallet.FAMILY,
            is_fraudulent=True,
            fraudulent_details="Duplicate order, total edited",
        ),
    ]


class TestCsvExport:

    def test_header_only_for_empty_input(self):
        rows = list(csv.reader(io.StringIO(export_csv([]))))
        assert rows == [CSV_COLUMNS]

    def test_one_row_per_receipt(self):
        rows = list(csv.reader(io.StringIO(export_csv(_receipts()))))
        assert len(rows) == 3
        assert rows[0] == CSV_COLUMNS

    def test_row_contents(self):
        rows = list(csv.DictReader(io.StringIO(export_csv(_receipts()))))
        first, second = rows
        assert first["id"] == "r1"
        assert first["date"] == "2024-07-15"
        assert first["total_amount"] == "1250.50"
        assert first["is_fraudulent"] == "no"
        assert first["items"] == "Rice (800); Dal (450.50)"
        assert second["date"] == ""
        assert second["wallet"] == "Family"
        assert second["is_fraudulent"] == "yes"
        # Commas inside a field survive quoting
        assert second["fraudulent_details"] == "Duplicate order, total edited"


class TestPdfExport:

    def test_pdf_bytes(self):
        pdf = export_pdf(_receipts(), title="ReceiptWise - All Wallet", generated_on=date(2024, 8, 20))
        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    def test_empty_pdf(self):
        assert export_pdf([]).startswith(b"%PDF")

    def test_single_category_pdf(self):
        assert export_pdf(_receipts()[:1]).startswith(b"%PDF")


class TestReceiptQrCode:
    """The per-receipt digital pass."""

    def test_payload_fields(self):
        payload = json.loads(receipt_qr_payload(_receipts()[0]))
        assert payload == {
            "vendor": "Big Bazaar",
            "date": "2024-07-15",
            "totalAmount": 1250.5,
            "items": "Rice: 800.00, Dal: 450.50",
        }

    def test_png_decodes_with_pillow(self):
        png = receipt_qr_png(_receipts()[0])
        assert png is not None
        img = Image.open(io.BytesIO(png))
        img.load()
        assert img.format == "PNG"
        assert img.size[0] == img.size[1]

    def test_unknown_date_is_encoded_as_null(self):
        assert json.loads(receipt_qr_payload(_receipts()[1]))["date"] is None
        assert receipt_qr_png(_receipts()[1]) is not None

    def test_oversized_receipt_gives_none(self):
        receipt = Receipt(
            vendor="Wholesale Mart",
            total_amount=Decimal("1"),
            line_items=[
                LineItem(name=f"{i:03d} " + "x" * 190, price=Decimal("1"))
                for i in range(20)
            ],
        )
        assert receipt_qr_png(receipt) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
