"""
Database package - SQLite only.
"""

from .models import (
    Offer, OfferItem, OfferInput, OfferStatus, PriceType, PricingFormat, utcnow
)
from .sqlite import SQLiteDatabase

__all__ = [
    "SQLiteDatabase",
    "Offer",
    "OfferItem",
    "OfferInput",
    "OfferStatus",
    "PriceType",
    "PricingFormat",
    "utcnow",
]
