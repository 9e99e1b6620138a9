"""
Pydantic models for database entities.
Offers and their line items, stored in SQLite.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class OfferStatus(str, Enum):
    """Lifecycle state of an offer."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class PriceType(str, Enum):
    """OFFER is a temporary price window, REGULAR a permanent change."""
    OFFER = "OFFER"
    REGULAR = "REGULAR"


class PricingFormat(str, Enum):
    """How the CSV price column is turned into the offer price."""
    ACTUAL = "ACTUAL"
    BASE = "BASE"


def utcnow() -> datetime:
    """Current UTC time without tzinfo, the form stored in SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OfferItem(BaseModel):
    """A single SKU/price line of an offer."""
    id: Optional[int] = None
    offer_id: Optional[int] = None
    sku: str
    offer_price: Decimal
    original_price: Optional[Decimal] = None  # set on activation, never cleared
    applied_at: Optional[datetime] = None
    reverted_at: Optional[datetime] = None


class Offer(BaseModel):
    """A scheduled price change."""
    id: Optional[int] = None
    title: Optional[str] = None
    vendor: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tags: str = ""
    status: OfferStatus = OfferStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    price_type: PriceType = PriceType.OFFER
    pricing_format: PricingFormat = PricingFormat.ACTUAL
    markup: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    sync_started_at: Optional[datetime] = None
    items: List[OfferItem] = Field(default_factory=list)

    @property
    def is_permanent(self) -> bool:
        return self.price_type == PriceType.REGULAR

    @property
    def display_name(self) -> str:
        return f"{self.title} ({self.vendor})" if self.title else self.vendor


class OfferInput(BaseModel):
    """
    Validated header fields from the create/edit form.

    Normalizes the dependent fields: REGULAR offers carry no dates and
    ACTUAL pricing carries no markup or discount.
    """
    title: Optional[str] = None
    vendor: str = Field(min_length=1)
    price_type: PriceType = PriceType.OFFER
    pricing_format: PricingFormat = PricingFormat.ACTUAL
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tags: str = ""
    markup: Optional[Decimal] = None
    discount: Optional[Decimal] = None

    @model_validator(mode="after")
    def check_dependent_fields(self) -> "OfferInput":
        if self.price_type == PriceType.OFFER:
            if self.start_date is None or self.end_date is None:
                raise ValueError("Start and End dates are required for Offer price type")
            if self.end_date < self.start_date:
                raise ValueError("End date must not be before start date")
        else:
            self.start_date = None
            self.end_date = None

        if self.pricing_format == PricingFormat.BASE:
            if self.markup is None or self.discount is None:
                raise ValueError("Markup and Discount are required for Base pricing format")
        else:
            self.markup = None
            self.discount = None

        return self

    def pricing_changed(self, offer: Offer) -> bool:
        """True if prices stored for `offer` would be computed differently now."""
        return (
            self.pricing_format != offer.pricing_format
            or self.markup != offer.markup
            or self.discount != offer.discount
        )
