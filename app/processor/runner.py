"""
Runner for the offer sweep: start offers that are due, end offers that expired.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..db import SQLiteDatabase, utcnow
from ..shopify import ShopifyClient
from .synchronizer import OfferSyncResult, SyncAction, activate_offer, revert_offer

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Error during an offer sync run."""
    pass


@dataclass
class SweepFailure:
    """An offer the sweep could not process."""
    offer_id: int
    action: SyncAction
    error: str


@dataclass
class SweepResult:
    """Result of one sweep."""
    results: List[OfferSyncResult] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)

    def _transitioned(self, action: SyncAction) -> int:
        return sum(1 for r in self.results if r.action == action and r.applied)

    @property
    def activated(self) -> int:
        return self._transitioned(SyncAction.ACTIVATE)

    @property
    def reverted(self) -> int:
        return self._transitioned(SyncAction.REVERT)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def message(self) -> str:
        text = f"Job ran. Activated: {self.activated}, Reverted: {self.reverted}"
        if self.failures:
            text += f", Failed: {self.failed}"
        return text


async def run_offer_action(
    action: SyncAction,
    offer_id: int,
    db: SQLiteDatabase,
    client: ShopifyClient
) -> OfferSyncResult:
    """Run activate or revert, wrapping unexpected errors in SyncError."""
    handler = activate_offer if action == SyncAction.ACTIVATE else revert_offer
    try:
        return await handler(offer_id, db, client)
    except Exception as e:
        raise SyncError(f"Failed to {action.value} offer {offer_id}: {e}") from e


async def run_due_offers(
    db: SQLiteDatabase,
    client: ShopifyClient,
    now: Optional[datetime] = None
) -> SweepResult:
    """
    Activate PENDING offers whose start date has passed, then revert ACTIVE
    offers whose end date has passed.

    Expired offers are looked up after the activations, so an offer whose
    whole window has already passed is activated and reverted in one sweep.
    Offers are processed one after another. A failing offer is logged and
    recorded, the sweep moves on to the next one.
    """
    if now is None:
        now = utcnow()

    sweep = SweepResult()

    to_activate = await db.get_offers_to_activate(now)
    logger.info(f"Sweep found {len(to_activate)} offers to activate")
    await _run_all(SyncAction.ACTIVATE, to_activate, db, client, sweep)

    to_revert = await db.get_offers_to_revert(now)
    logger.info(f"Sweep found {len(to_revert)} offers to revert")
    await _run_all(SyncAction.REVERT, to_revert, db, client, sweep)

    logger.info(sweep.message)
    return sweep


async def _run_all(
    action: SyncAction,
    offer_ids: List[int],
    db: SQLiteDatabase,
    client: ShopifyClient,
    sweep: SweepResult
) -> None:
    for offer_id in offer_ids:
        logger.info(f"Running {action.value} for offer {offer_id}")
        try:
            sweep.results.append(await run_offer_action(action, offer_id, db, client))
        except SyncError as e:
            logger.error(str(e))
            sweep.failures.append(
                SweepFailure(offer_id=offer_id, action=action, error=str(e.__cause__ or e))
            )
