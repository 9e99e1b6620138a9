"""
Business rules for calculating offer prices and product tags.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, Optional

from ..db import OfferItem, PricingFormat
from .csv_parser import CSVRow, OfferValidationError


CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class PricingError(OfferValidationError):
    """A price could not be computed from the uploaded values."""
    pass


def parse_price(value: str) -> Decimal:
    """Parse a price string as written in the CSV (e.g. "29.99")."""
    try:
        price = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        raise PricingError(f"Invalid price '{value}'")
    if not price.is_finite():
        raise PricingError(f"Invalid price '{value}'")
    return price


def calculate_offer_price(
    raw_price: str,
    pricing_format: PricingFormat = PricingFormat.ACTUAL,
    markup: Optional[Decimal] = None,
    discount: Optional[Decimal] = None,
) -> Decimal:
    """
    Calculate the unit offer price for one CSV row.

    Rules:
    1. ACTUAL: the CSV price is the offer price
    2. BASE: base price × markup × (1 - discount / 100)

    Results are not clamped, a discount above 100 gives a negative price.

    Args:
        raw_price: Price string from the CSV
        pricing_format: ACTUAL or BASE
        markup: Multiplier applied to the base price (BASE only)
        discount: Percentage taken off after markup (BASE only)

    Returns:
        Offer price, exact. `format_price` rounds it to cents for the API.
    """
    price = parse_price(raw_price)

    if PricingFormat(pricing_format) == PricingFormat.BASE:
        if markup is None or discount is None:
            raise PricingError("Markup and Discount are required for Base pricing format")
        price = price * Decimal(markup) * (1 - Decimal(discount) / HUNDRED)

    return price


def build_offer_items(
    rows: Iterable[CSVRow],
    pricing_format: PricingFormat = PricingFormat.ACTUAL,
    markup: Optional[Decimal] = None,
    discount: Optional[Decimal] = None,
) -> List[OfferItem]:
    """Turn parsed CSV rows into offer items with computed prices."""
    items = []
    for row in rows:
        try:
            offer_price = calculate_offer_price(row.price, pricing_format, markup, discount)
        except PricingError as e:
            raise PricingError(f"SKU '{row.sku}': {e}") from e
        items.append(OfferItem(sku=row.sku, offer_price=offer_price))
    return items


def format_price(value: Optional[Decimal]) -> Optional[str]:
    """
    Format a price to standard format (2 decimal places).

    Args:
        value: Price as Decimal or string

    Returns:
        Formatted price or None
    """
    if value is None:
        return None
    return str(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def parse_tags(tags: Optional[str]) -> List[str]:
    """Split a comma-separated tag string, dropping blanks and repeats."""
    result: List[str] = []
    for tag in (tags or "").split(","):
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


def merge_tags(current: Iterable[str], added: Iterable[str]) -> List[str]:
    """Union of two tag lists, keeping the existing order first."""
    merged = list(dict.fromkeys(current))
    for tag in added:
        if tag not in merged:
            merged.append(tag)
    return merged


def remove_tags(current: Iterable[str], removed: Iterable[str]) -> List[str]:
    """Current tags minus exactly the given ones."""
    removed = set(removed)
    return [tag for tag in current if tag not in removed]
