"""
Mandatory Shopify privacy webhooks.

Offers hold no customer data and the app serves a single store, so each
topic is verified, logged and acknowledged.
"""

import base64
import hashlib
import hmac
import logging

from fastapi import APIRouter, HTTPException, Request

from ..config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")


def verify_webhook(body: bytes, signature: str, secret: str) -> bool:
    """Check the X-Shopify-Hmac-Sha256 header against the raw body."""
    if not secret or not signature:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, signature)


async def _receive(request: Request) -> str:
    body = await request.body()
    signature = request.headers.get("X-Shopify-Hmac-Sha256", "")

    if not verify_webhook(body, signature, settings.shopify_api_secret):
        logger.warning(f"Rejected webhook with invalid signature on {request.url.path}")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    topic = request.headers.get("X-Shopify-Topic", "unknown")
    shop = request.headers.get("X-Shopify-Shop-Domain", "unknown")
    logger.info(f"Received {topic} webhook for {shop}")
    return shop


@router.post("/customers/data_request")
async def customers_data_request(request: Request):
    await _receive(request)
    return {"status": "ok"}


@router.post("/customers/redact")
async def customers_redact(request: Request):
    await _receive(request)
    return {"status": "ok"}


@router.post("/shop/redact")
async def shop_redact(request: Request):
    # Offers are not scoped by shop, there is nothing shop-specific to delete
    shop = await _receive(request)
    logger.info(f"Shop redact acknowledged for {shop}")
    return {"status": "ok"}
