"""
Processor package for offer parsing, pricing and sync operations.
"""

from .csv_parser import parse_csv, decode_upload, CSVRow, CSVParseError, OfferValidationError
from .pricing import (
    calculate_offer_price,
    build_offer_items,
    format_price,
    parse_tags,
    merge_tags,
    remove_tags,
    PricingError
)
from .synchronizer import activate_offer, revert_offer, OfferSyncResult, SyncAction
from .runner import run_due_offers, run_offer_action, SweepResult, SyncError

__all__ = [
    "parse_csv",
    "decode_upload",
    "CSVRow",
    "CSVParseError",
    "OfferValidationError",
    "calculate_offer_price",
    "build_offer_items",
    "format_price",
    "parse_tags",
    "merge_tags",
    "remove_tags",
    "PricingError",
    "activate_offer",
    "revert_offer",
    "OfferSyncResult",
    "SyncAction",
    "run_due_offers",
    "run_offer_action",
    "SweepResult",
    "SyncError",
]
