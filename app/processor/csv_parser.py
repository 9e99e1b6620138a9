"""
CSV item parsing for offer uploads.
"""

import csv
import io
from dataclasses import dataclass
from typing import List

from ..db import PricingFormat


SKU_COLUMN = "sku"
PRICE_COLUMNS = {
    PricingFormat.ACTUAL: "Actual Price",
    PricingFormat.BASE: "Base Price",
}


class OfferValidationError(ValueError):
    """Input rejected before anything is written."""
    pass


class CSVParseError(OfferValidationError):
    """Uploaded CSV is unreadable or missing required columns."""
    pass


@dataclass
class CSVRow:
    """One SKU/price pair from the upload, as written in the file."""
    sku: str
    price: str


def decode_upload(data: bytes) -> str:
    """Decode an uploaded file as UTF-8, tolerating a byte-order mark."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CSVParseError(f"CSV must be UTF-8 encoded text ({e.reason} at byte {e.start})")


def parse_csv(content: str, pricing_format: PricingFormat = PricingFormat.ACTUAL) -> List[CSVRow]:
    """
    Parse offer items from CSV text.

    Headers are matched case-insensitively after trimming. A `sku` column is
    always required; the price column is `Base Price` for BASE pricing and
    `Actual Price` otherwise.

    Args:
        content: Raw CSV text
        pricing_format: Selects the required price column

    Returns:
        Rows in file order, blank lines skipped

    Raises:
        CSVParseError: Missing columns, malformed rows or unparseable text
    """
    price_header = PRICE_COLUMNS[PricingFormat(pricing_format)]
    content = content.lstrip("\ufeff")

    try:
        records = list(csv.reader(io.StringIO(content, newline=""), strict=True))
    except csv.Error as e:
        raise CSVParseError(f"Could not read CSV: {e}")

    # Skip lines that hold nothing but separators or whitespace
    numbered = [
        (row_no, [cell.strip() for cell in record])
        for row_no, record in enumerate(records, start=1)
        if any(cell.strip() for cell in record)
    ]

    if not numbered:
        raise CSVParseError("CSV is empty.")

    _, header = numbered[0]
    columns = [name.lower() for name in header]

    if SKU_COLUMN not in columns:
        raise CSVParseError("CSV must contain 'sku' column.")
    if price_header.lower() not in columns:
        raise CSVParseError(f"CSV must contain '{price_header}' column.")

    sku_index = columns.index(SKU_COLUMN)
    price_index = columns.index(price_header.lower())

    rows = []
    for row_no, record in numbered[1:]:
        if len(record) != len(columns):
            raise CSVParseError(
                f"Row {row_no}: expected {len(columns)} columns, found {len(record)}."
            )

        sku = record[sku_index]
        price = record[price_index]

        if not sku:
            raise CSVParseError(f"Row {row_no}: missing sku.")
        if not price:
            raise CSVParseError(f"Row {row_no}: missing {price_header.lower()} for '{sku}'.")

        rows.append(CSVRow(sku=sku, price=price))

    return rows
