"""
JSON API for the sweep and offer lifecycle actions.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional

from ..dependencies import get_db, get_shopify_client, require_auth
from ..processor import SyncAction, SyncError, run_due_offers, run_offer_action
from ..shopify import ShopifyClient

router = APIRouter(prefix="/api", dependencies=[Depends(require_auth)])


class SweepFailureResponse(BaseModel):
    offer_id: int
    action: str
    error: str


class SweepResponse(BaseModel):
    message: str
    activated: int
    reverted: int
    failed: int
    failures: List[SweepFailureResponse] = []
    success: bool


class OfferActionResponse(BaseModel):
    offer_id: int
    action: str
    success: bool
    status: Optional[str] = None
    skipped: Optional[str] = None
    items_updated: int = 0
    items_not_found: int = 0
    items_failed: int = 0
    message: str


@router.post("/jobs/run", response_model=SweepResponse)
async def run_job(client: ShopifyClient = Depends(get_shopify_client)):
    """Run the offer sweep and wait for it to finish."""
    sweep = await run_due_offers(get_db(), client)

    return SweepResponse(
        message=sweep.message,
        activated=sweep.activated,
        reverted=sweep.reverted,
        failed=sweep.failed,
        failures=[
            SweepFailureResponse(offer_id=f.offer_id, action=f.action.value, error=f.error)
            for f in sweep.failures
        ],
        success=not sweep.failures
    )


@router.post("/offers/{offer_id}/{intent}", response_model=OfferActionResponse)
async def offer_action(offer_id: int, intent: str, client: ShopifyClient = Depends(get_shopify_client)):
    """Activate, revert or delete an offer."""
    db = get_db()

    offer = await db.get_offer(offer_id)
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")

    if intent == "delete":
        await db.delete_offer(offer_id)
        return OfferActionResponse(
            offer_id=offer_id,
            action=intent,
            success=True,
            message=f"Offer {offer_id} deleted"
        )

    try:
        action = SyncAction(intent)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown intent: {intent}")

    try:
        result = await run_offer_action(action, offer_id, db, client)
    except SyncError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return OfferActionResponse(
        offer_id=offer_id,
        action=action.value,
        success=result.applied,
        status=result.status.value if result.status else None,
        skipped=result.skipped,
        items_updated=result.items_updated,
        items_not_found=result.items_not_found,
        items_failed=result.items_failed,
        message=result.message
    )
