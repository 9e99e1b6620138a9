"""
Applies and reverts offer prices against the Shopify catalog.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Optional

from ..config import settings
from ..db import Offer, OfferItem, OfferStatus, SQLiteDatabase, utcnow
from ..shopify import (
    ShopifyAuthError, ShopifyClient, ShopifyClientError,
    find_variant_by_sku, update_product_tags, update_variant_price
)
from .pricing import format_price, merge_tags, parse_tags, remove_tags

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    ACTIVATE = "activate"
    REVERT = "revert"


# Status an offer must have for each action, and the status it ends in
TRANSITIONS = {
    SyncAction.ACTIVATE: (OfferStatus.PENDING, OfferStatus.ACTIVE),
    SyncAction.REVERT: (OfferStatus.ACTIVE, OfferStatus.COMPLETED),
}


class ItemOutcome(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class OfferSyncResult:
    """What one activate/revert run did."""
    offer_id: int
    action: SyncAction
    status: Optional[OfferStatus] = None
    skipped: Optional[str] = None

    items_updated: int = 0
    items_not_found: int = 0
    items_failed: int = 0
    items_skipped: int = 0  # nothing to restore
    items_already_synced: int = 0

    @property
    def applied(self) -> bool:
        return self.skipped is None

    @property
    def message(self) -> str:
        if self.skipped:
            return f"Offer {self.offer_id} not {self.action.value}d: {self.skipped}"
        text = (
            f"Offer {self.offer_id} {self.status.value.lower()}: "
            f"{self.items_updated} updated"
        )
        if self.items_not_found:
            text += f", {self.items_not_found} not found"
        if self.items_failed:
            text += f", {self.items_failed} failed"
        return text

    def count(self, outcome: ItemOutcome) -> None:
        if outcome == ItemOutcome.UPDATED:
            self.items_updated += 1
        elif outcome == ItemOutcome.NOT_FOUND:
            self.items_not_found += 1
        else:
            self.items_failed += 1


async def activate_offer(
    offer_id: int,
    db: SQLiteDatabase,
    client: ShopifyClient,
    delay_seconds: Optional[float] = None,
) -> OfferSyncResult:
    """
    Apply a PENDING offer's prices and tags to the store.

    Records each item's original price before changing it, then moves the
    offer to ACTIVE. Items whose SKU is not found or whose update fails are
    logged and left behind; they do not stop the run.
    """
    return await _run(SyncAction.ACTIVATE, offer_id, db, client, delay_seconds)


async def revert_offer(
    offer_id: int,
    db: SQLiteDatabase,
    client: ShopifyClient,
    delay_seconds: Optional[float] = None,
) -> OfferSyncResult:
    """
    Restore an ACTIVE offer's recorded original prices and remove its tags.

    Moves the offer to COMPLETED once every item has been attempted.
    """
    return await _run(SyncAction.REVERT, offer_id, db, client, delay_seconds)


async def _run(
    action: SyncAction,
    offer_id: int,
    db: SQLiteDatabase,
    client: ShopifyClient,
    delay_seconds: Optional[float],
) -> OfferSyncResult:
    expected, target = TRANSITIONS[action]
    result = OfferSyncResult(offer_id=offer_id, action=action)

    if delay_seconds is None:
        delay_seconds = settings.api_delay_seconds

    offer = await db.get_offer(offer_id)
    if offer is None:
        result.skipped = "offer not found"
        logger.info(f"Offer {offer_id} not found, nothing to {action.value}")
        return result

    result.status = offer.status
    if offer.status != expected:
        result.skipped = f"offer is {offer.status.value}, expected {expected.value}"
        logger.info(f"Offer {offer_id} is {offer.status.value}, skipping {action.value}")
        return result

    stale_before = utcnow() - timedelta(minutes=settings.sync_claim_timeout_minutes)
    if not await db.claim_offer(offer_id, expected, stale_before):
        result.skipped = "offer is already being synced"
        logger.warning(f"Offer {offer_id} is claimed by another run, skipping {action.value}")
        return result

    try:
        # Re-read under the claim so edits made before it are picked up
        offer = await db.get_offer(offer_id)
        if offer is None:
            result.skipped = "offer was deleted"
            return result

        tags = parse_tags(offer.tags)
        logger.info(
            f"Starting {action.value} of offer {offer_id} "
            f"({len(offer.items)} items, tags: {tags or 'none'})"
        )

        for index, item in enumerate(offer.items):
            if action == SyncAction.ACTIVATE:
                if item.applied_at is not None:
                    result.items_already_synced += 1
                    continue
            else:
                if item.original_price is None:
                    result.items_skipped += 1
                    continue
                if item.reverted_at is not None:
                    result.items_already_synced += 1
                    continue

            try:
                if action == SyncAction.ACTIVATE:
                    outcome = await _apply_item(offer, item, tags, db, client)
                else:
                    outcome = await _revert_item(item, tags, db, client)
            except ShopifyAuthError:
                raise
            except ShopifyClientError as e:
                logger.error(f"Error syncing SKU {item.sku} of offer {offer_id}: {e}")
                outcome = ItemOutcome.FAILED

            result.count(outcome)

            if delay_seconds > 0 and index < len(offer.items) - 1:
                await asyncio.sleep(delay_seconds)

    except Exception:
        logger.exception(f"Aborted {action.value} of offer {offer_id}")
        await db.release_offer(offer_id)
        raise

    if await db.finish_offer(offer_id, expected, target):
        result.status = target
    else:
        logger.warning(f"Offer {offer_id} changed during {action.value}, status not updated")

    logger.info(
        f"Finished {action.value} of offer {offer_id}: "
        f"{result.items_updated} updated, {result.items_not_found} not found, "
        f"{result.items_failed} failed, {result.items_already_synced} already synced"
    )
    return result


async def _apply_item(
    offer: Offer,
    item: OfferItem,
    tags: List[str],
    db: SQLiteDatabase,
    client: ShopifyClient,
) -> ItemOutcome:
    variant = await find_variant_by_sku(client, item.sku)
    if variant is None:
        logger.warning(f"Variant not found for SKU: {item.sku}")
        return ItemOutcome.NOT_FOUND

    # A REGULAR offer is permanent, so revert has nothing to go back to
    original = item.offer_price if offer.is_permanent else variant.price
    if original is not None:
        await db.set_original_price(item.id, original)

    errors = await update_variant_price(client, variant, format_price(item.offer_price))

    if tags:
        await update_product_tags(client, variant.product_id, merge_tags(variant.tags, tags))

    if errors:
        return ItemOutcome.FAILED

    await db.mark_item_applied(item.id)
    return ItemOutcome.UPDATED


async def _revert_item(
    item: OfferItem,
    tags: List[str],
    db: SQLiteDatabase,
    client: ShopifyClient,
) -> ItemOutcome:
    variant = await find_variant_by_sku(client, item.sku)
    if variant is None:
        logger.warning(f"Variant not found for SKU: {item.sku}")
        return ItemOutcome.NOT_FOUND

    errors = await update_variant_price(client, variant, format_price(item.original_price))

    if tags:
        await update_product_tags(client, variant.product_id, remove_tags(variant.tags, tags))

    if errors:
        return ItemOutcome.FAILED

    await db.mark_item_reverted(item.id)
    return ItemOutcome.UPDATED
