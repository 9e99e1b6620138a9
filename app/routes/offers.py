"""
Offer management routes.
"""

import logging
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from fastapi import APIRouter, Request, Form, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from ..config import settings
from ..dependencies import get_db, get_shopify_client, require_auth
from ..db import Offer, OfferInput, OfferItem, OfferStatus
from ..processor import (
    CSVParseError, OfferValidationError, SyncAction, SyncError,
    build_offer_items, decode_upload, parse_csv, run_due_offers, run_offer_action
)
from ..shopify import (
    ShopifyClient, ShopifyClientError, fetch_product_vendors, find_variants_by_skus
)
from .templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/offers", dependencies=[Depends(require_auth)])

OFFERS_PER_PAGE = 5
FORM_FIELDS = (
    "title", "vendor", "price_type", "pricing_format", "start_date",
    "end_date", "tags", "markup", "discount"
)


# ===== Form helpers =====

def error_message(error: Exception) -> str:
    """Readable text for a validation failure."""
    if isinstance(error, ValidationError):
        messages = []
        for err in error.errors():
            msg = err["msg"]
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            field = ".".join(str(part) for part in err["loc"])
            messages.append(f"{field}: {msg}" if field else msg)
        return "; ".join(messages)
    return str(error)


def _parse_date(value: str, label: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise OfferValidationError(f"{label} must be a date in YYYY-MM-DD format")


def _parse_decimal(value: str, label: str) -> Optional[Decimal]:
    if not value:
        return None
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise OfferValidationError(f"{label} must be a number")
    if not number.is_finite():
        raise OfferValidationError(f"{label} must be a number")
    return number


def build_offer_input(values: dict) -> OfferInput:
    """Validate raw form values into an OfferInput."""
    if not values["vendor"]:
        raise OfferValidationError("Missing required fields: vendor")

    return OfferInput(
        title=values["title"] or None,
        vendor=values["vendor"],
        price_type=values["price_type"] or "OFFER",
        pricing_format=values["pricing_format"] or "ACTUAL",
        start_date=_parse_date(values["start_date"], "Start date"),
        end_date=_parse_date(values["end_date"], "End date"),
        tags=values["tags"],
        markup=_parse_decimal(values["markup"], "Markup"),
        discount=_parse_decimal(values["discount"], "Discount"),
    )


async def read_upload(upload) -> Optional[str]:
    """
    Read the CSV upload as text.

    Returns None when no file was chosen.
    """
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None

    data = await upload.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise CSVParseError(f"CSV file is larger than {settings.max_upload_bytes:,} bytes.")
    if not data:
        return None
    return decode_upload(data)


async def read_offer_form(request: Request):
    """Raw string values of the offer form plus the uploaded file."""
    form = await request.form()
    values = {name: str(form.get(name) or "").strip() for name in FORM_FIELDS}
    return values, form.get("file")


def offer_form_values(offer: Offer) -> dict:
    return {
        "title": offer.title or "",
        "vendor": offer.vendor,
        "price_type": offer.price_type.value,
        "pricing_format": offer.pricing_format.value,
        "start_date": offer.start_date.strftime("%Y-%m-%d") if offer.start_date else "",
        "end_date": offer.end_date.strftime("%Y-%m-%d") if offer.end_date else "",
        "tags": offer.tags,
        "markup": str(offer.markup) if offer.markup is not None else "1.0",
        "discount": str(offer.discount) if offer.discount is not None else "0",
    }


def default_form_values() -> dict:
    today = datetime.now().strftime("%Y-%m-%d")
    return {
        "title": "", "vendor": "", "price_type": "OFFER", "pricing_format": "ACTUAL",
        "start_date": today, "end_date": today, "tags": "", "markup": "1.0", "discount": "0",
    }


def parse_items(content: str, data: OfferInput) -> List[OfferItem]:
    rows = parse_csv(content, data.pricing_format)
    items = build_offer_items(rows, data.pricing_format, data.markup, data.discount)
    if not items:
        raise CSVParseError("CSV contains no items.")
    return items


async def load_vendors(client: ShopifyClient) -> List[str]:
    try:
        return await fetch_product_vendors(client)
    except ShopifyClientError as e:
        logger.warning(f"Could not load vendors: {e}")
        return []


async def get_offer_or_404(offer_id: int) -> Offer:
    offer = await get_db().get_offer(offer_id)
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


# ===== Routes =====

@router.get("", response_class=HTMLResponse)
async def list_offers(
    request: Request,
    page: int = Query(1, ge=1),
    client: ShopifyClient = Depends(get_shopify_client)
):
    """List offers, newest first."""
    db = get_db()

    total = await db.count_offers()
    total_pages = max(1, math.ceil(total / OFFERS_PER_PAGE))
    offers = await db.get_offers(limit=OFFERS_PER_PAGE, offset=(page - 1) * OFFERS_PER_PAGE)

    # Product title of each offer's first SKU
    product_titles = {}
    skus = [offer.items[0].sku for offer in offers if offer.items]
    if skus:
        try:
            variants = await find_variants_by_skus(client, skus)
            for offer in offers:
                if offer.items and offer.items[0].sku in variants:
                    product_titles[offer.id] = variants[offer.items[0].sku].product_title
        except ShopifyClientError as e:
            logger.warning(f"Could not load product titles: {e}")

    return render(
        request,
        "offers/list.html",
        {
            "offers": offers,
            "product_titles": product_titles,
            "page": page,
            "total_pages": total_pages,
            "total": total,
            "has_prev": page > 1,
            "has_next": page < total_pages,
        }
    )


@router.post("/run-job")
async def run_job(client: ShopifyClient = Depends(get_shopify_client)):
    """Run the offer sweep now."""
    sweep = await run_due_offers(get_db(), client)
    return redirect("/offers", sweep.message, "error" if sweep.failures else "success")


@router.get("/new", response_class=HTMLResponse)
async def new_offer_form(request: Request, client: ShopifyClient = Depends(get_shopify_client)):
    """Show form to create a new offer."""
    return render(
        request,
        "offers/form.html",
        {
            "offer": None,
            "values": default_form_values(),
            "vendors": await load_vendors(client),
            "error": None,
        }
    )


@router.post("/new")
async def create_offer(request: Request, client: ShopifyClient = Depends(get_shopify_client)):
    """Create a PENDING offer from the form and its CSV."""
    values, upload = await read_offer_form(request)

    try:
        data = build_offer_input(values)
        content = await read_upload(upload)
        if content is None:
            raise CSVParseError("CSV file is required.")
        items = parse_items(content, data)
    except (OfferValidationError, ValidationError) as e:
        return render(
            request,
            "offers/form.html",
            {
                "offer": None,
                "values": values,
                "vendors": await load_vendors(client),
                "error": error_message(e),
            },
            status_code=400
        )

    offer = await get_db().create_offer(data, items)
    logger.info(f"Created offer {offer.id} with {len(items)} items")
    return redirect(f"/offers/{offer.id}", "Offer created", "success")


@router.get("/{offer_id}", response_class=HTMLResponse)
async def view_offer(
    request: Request,
    offer_id: int,
    client: ShopifyClient = Depends(get_shopify_client)
):
    """Show an offer with its items."""
    offer = await get_offer_or_404(offer_id)

    # Pending items have no recorded price yet, show what the store has now
    current_prices = {}
    if offer.status == OfferStatus.PENDING:
        missing = [item.sku for item in offer.items if item.original_price is None]
        if missing:
            try:
                variants = await find_variants_by_skus(client, missing)
                current_prices = {sku: v.price for sku, v in variants.items()}
            except ShopifyClientError as e:
                logger.warning(f"Could not load current prices for offer {offer_id}: {e}")

    rows = [
        {
            "item": item,
            "original_price": (
                item.original_price if item.original_price is not None
                else current_prices.get(item.sku)
            ),
        }
        for item in offer.items
    ]

    return render(request, "offers/detail.html", {"offer": offer, "rows": rows})


@router.post("/{offer_id}/action")
async def offer_action(offer_id: int, intent: str = Form(...), client: ShopifyClient = Depends(get_shopify_client)):
    """Handle activate, revert and delete buttons."""
    db = get_db()
    offer = await get_offer_or_404(offer_id)

    if intent == "delete":
        await db.delete_offer(offer_id)
        logger.info(f"Deleted offer {offer_id} ({offer.status.value})")
        return redirect("/offers", f"Offer {offer_id} deleted", "success")

    try:
        action = SyncAction(intent)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown intent: {intent}")

    try:
        result = await run_offer_action(action, offer_id, db, client)
    except SyncError as e:
        logger.error(str(e))
        return redirect(f"/offers/{offer_id}", str(e), "error")

    return redirect(f"/offers/{offer_id}", result.message, "success" if result.applied else "error")


@router.get("/{offer_id}/edit", response_class=HTMLResponse)
async def edit_offer_form(
    request: Request,
    offer_id: int,
    client: ShopifyClient = Depends(get_shopify_client)
):
    """Show form to edit a PENDING offer."""
    offer = await get_offer_or_404(offer_id)
    if offer.status != OfferStatus.PENDING:
        raise HTTPException(status_code=400, detail="Offer cannot be edited")

    return render(
        request,
        "offers/form.html",
        {
            "offer": offer,
            "values": offer_form_values(offer),
            "vendors": await load_vendors(client),
            "error": None,
        }
    )


@router.post("/{offer_id}/edit")
async def update_offer(
    request: Request,
    offer_id: int,
    client: ShopifyClient = Depends(get_shopify_client)
):
    """Update a PENDING offer, replacing its items if a new CSV is uploaded."""
    offer = await get_offer_or_404(offer_id)
    if offer.status != OfferStatus.PENDING:
        raise HTTPException(status_code=400, detail="Offer cannot be edited")

    values, upload = await read_offer_form(request)

    try:
        data = build_offer_input(values)
        content = await read_upload(upload)
        items = None
        if content is not None:
            items = parse_items(content, data)
        elif data.pricing_changed(offer):
            raise OfferValidationError("Upload the CSV again when changing pricing format, markup or discount.")
    except (OfferValidationError, ValidationError) as e:
        return render(
            request,
            "offers/form.html",
            {
                "offer": offer,
                "values": values,
                "vendors": await load_vendors(client),
                "error": error_message(e),
            },
            status_code=400
        )

    if not await get_db().update_pending_offer(offer_id, data, items):
        raise HTTPException(status_code=400, detail="Offer cannot be edited")

    logger.info(f"Updated offer {offer_id}" + (f", {len(items)} items replaced" if items else ""))
    return redirect(f"/offers/{offer_id}", "Offer updated", "success")
