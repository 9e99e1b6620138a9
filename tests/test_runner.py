"""
Tests for the offer sweep and manual actions.
"""

import pytest
from datetime import datetime

from app.db import OfferStatus, PriceType
from app.processor.runner import SyncError, run_due_offers, run_offer_action
from app.processor.synchronizer import SyncAction
from app.shopify import ShopifyAuthError

from factories import items, offer_input


@pytest.mark.asyncio
async def test_offer_window_end_to_end(db, shopify):
    shopify.add_product("SK12345", "250.00", tags=["featured"])
    offer = await db.create_offer(
        offer_input(
            start_date=datetime(2025, 1, 1),
            end_date=datetime(2025, 1, 31),
            tags="sale",
        ),
        items(("SK12345", "200.00"))
    )

    before = await run_due_offers(db, shopify, now=datetime(2024, 12, 31, 23, 0))
    assert before.message == "Job ran. Activated: 0, Reverted: 0"
    assert shopify.price_of("SK12345") == "250.00"

    started = await run_due_offers(db, shopify, now=datetime(2025, 1, 1, 0, 15))
    assert started.activated == 1
    assert started.message == "Job ran. Activated: 1, Reverted: 0"
    assert shopify.price_of("SK12345") == "200.00"
    assert shopify.tags_of("SK12345") == ["featured", "sale"]

    during = await run_due_offers(db, shopify, now=datetime(2025, 1, 20))
    assert during.activated == 0
    assert during.reverted == 0

    ended = await run_due_offers(db, shopify, now=datetime(2025, 2, 1))
    assert ended.reverted == 1
    assert shopify.price_of("SK12345") == "250.00"
    assert shopify.tags_of("SK12345") == ["featured"]
    assert (await db.get_offer(offer.id)).status == OfferStatus.COMPLETED


@pytest.mark.asyncio
async def test_passed_window_is_activated_and_reverted_in_one_sweep(db, shopify):
    shopify.add_product("SK1", "250.00", tags=["featured"])
    offer = await db.create_offer(
        offer_input(start_date=datetime(2025, 1, 1), end_date=datetime(2025, 1, 2), tags="sale"),
        items(("SK1", "200.00"))
    )

    sweep = await run_due_offers(db, shopify, now=datetime(2025, 1, 5))

    assert sweep.activated == 1
    assert sweep.reverted == 1
    assert sweep.message == "Job ran. Activated: 1, Reverted: 1"
    assert shopify.price_of("SK1") == "250.00"
    assert shopify.tags_of("SK1") == ["featured"]
    assert (await db.get_offer(offer.id)).status == OfferStatus.COMPLETED


@pytest.mark.asyncio
async def test_regular_offers_are_not_swept(db, shopify):
    shopify.add_product("SK1", "10.00")
    offer = await db.create_offer(offer_input(price_type=PriceType.REGULAR), items(("SK1", "12.00")))

    sweep = await run_due_offers(db, shopify, now=datetime(2030, 1, 1))

    assert sweep.activated == 0
    assert (await db.get_offer(offer.id)).status == OfferStatus.PENDING


@pytest.mark.asyncio
async def test_failing_offer_does_not_stop_the_sweep(db, shopify):
    shopify.add_product("BROKEN", "10.00")
    shopify.add_product("SK1", "10.00")
    shopify.lookup_errors["BROKEN"] = ShopifyAuthError("Authentication failed")
    broken = await db.create_offer(offer_input(), items(("BROKEN", "5")))
    fine = await db.create_offer(offer_input(), items(("SK1", "5")))

    sweep = await run_due_offers(db, shopify, now=datetime(2025, 1, 2))

    assert sweep.activated == 1
    assert sweep.failed == 1
    assert sweep.failures[0].offer_id == broken.id
    assert sweep.failures[0].action == SyncAction.ACTIVATE
    assert "Authentication failed" in sweep.failures[0].error
    assert sweep.message == "Job ran. Activated: 1, Reverted: 0, Failed: 1"
    assert (await db.get_offer(broken.id)).status == OfferStatus.PENDING
    assert (await db.get_offer(fine.id)).status == OfferStatus.ACTIVE


@pytest.mark.asyncio
async def test_manual_activate_ignores_dates(db, shopify):
    shopify.add_product("SK1", "10.00")
    offer = await db.create_offer(
        offer_input(start_date=datetime(2099, 1, 1), end_date=datetime(2099, 1, 2)), items(("SK1", "8"))
    )

    result = await run_offer_action(SyncAction.ACTIVATE, offer.id, db, shopify)

    assert result.applied
    assert shopify.price_of("SK1") == "8.00"


@pytest.mark.asyncio
async def test_manual_action_wraps_errors(db, shopify):
    shopify.add_product("SK1", "10.00")
    shopify.lookup_errors["SK1"] = ShopifyAuthError("Authentication failed")
    offer = await db.create_offer(offer_input(), items(("SK1", "8")))

    with pytest.raises(SyncError, match=f"Failed to activate offer {offer.id}"):
        await run_offer_action(SyncAction.ACTIVATE, offer.id, db, shopify)
