"""
Catalog reads and writes used by the offer synchronizer.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.shopify.client import ShopifyClient
from app.shopify.mutations import PRODUCT_UPDATE_TAGS, PRODUCT_VARIANTS_BULK_UPDATE
from app.shopify.queries import (
    PRODUCT_VENDORS_QUERY,
    VARIANTS_BY_SKU_QUERY,
    build_sku_search,
)

logger = logging.getLogger(__name__)

# Shopify search on sku is not exact, fetch a few and pick the exact match
SKU_LOOKUP_LIMIT = 5
SKU_BATCH_LIMIT = 50


@dataclass
class RemoteVariant:
    """A product variant as currently stored in Shopify."""

    variant_id: str
    sku: Optional[str]
    price: Optional[Decimal]
    product_id: str
    product_title: Optional[str] = None
    tags: List[str] = field(default_factory=list)


def _parse_variant(node: dict) -> RemoteVariant:
    product = node.get("product") or {}
    price = node.get("price")
    return RemoteVariant(
        variant_id=node["id"],
        sku=node.get("sku"),
        price=Decimal(str(price)) if price is not None else None,
        product_id=product.get("id", ""),
        product_title=product.get("title"),
        tags=list(product.get("tags") or []),
    )


async def find_variant_by_sku(
    client: ShopifyClient,
    sku: str
) -> Optional[RemoteVariant]:
    """
    Look up the variant for a SKU.

    Returns the variant whose SKU matches exactly, else the first search
    hit, or None if the search found nothing.
    """
    data = await client.execute(
        VARIANTS_BY_SKU_QUERY,
        variables={"query": build_sku_search(sku), "first": SKU_LOOKUP_LIMIT}
    )
    edges = (data.get("productVariants") or {}).get("edges") or []
    variants = [_parse_variant(edge["node"]) for edge in edges]

    if not variants:
        return None

    for variant in variants:
        if variant.sku == sku:
            return variant

    logger.debug(f"No exact match for SKU {sku}, using {variants[0].variant_id}")
    return variants[0]


async def find_variants_by_skus(
    client: ShopifyClient,
    skus: Iterable[str]
) -> Dict[str, RemoteVariant]:
    """
    Look up several SKUs, SKU_BATCH_LIMIT per query.

    Returns:
        Dict of SKU to variant; SKUs without an exact match are left out
    """
    unique = list(dict.fromkeys(sku for sku in skus if sku))
    found: Dict[str, RemoteVariant] = {}

    for start in range(0, len(unique), SKU_BATCH_LIMIT):
        batch = unique[start:start + SKU_BATCH_LIMIT]
        data = await client.execute(
            VARIANTS_BY_SKU_QUERY,
            variables={"query": build_sku_search(batch), "first": SKU_BATCH_LIMIT}
        )
        edges = (data.get("productVariants") or {}).get("edges") or []

        for edge in edges:
            variant = _parse_variant(edge["node"])
            if variant.sku in batch and variant.sku not in found:
                found[variant.sku] = variant

    return found


async def update_variant_price(
    client: ShopifyClient,
    variant: RemoteVariant,
    price: str
) -> List[str]:
    """
    Set a variant's price.

    Args:
        variant: Variant to update
        price: New price as a decimal string (e.g. "54.00")

    Returns:
        User error messages reported by Shopify (empty on success)
    """
    _, errors = await client.mutate(
        PRODUCT_VARIANTS_BULK_UPDATE,
        {
            "productId": variant.product_id,
            "variants": [{"id": variant.variant_id, "price": price}]
        },
        "productVariantsBulkUpdate"
    )
    if errors:
        logger.warning(f"Failed to update price of {variant.variant_id}: {errors}")
    else:
        logger.debug(f"Set price of {variant.variant_id} to {price}")
    return errors


async def update_product_tags(
    client: ShopifyClient,
    product_id: str,
    tags: List[str]
) -> List[str]:
    """
    Replace a product's tag list.

    Returns:
        User error messages reported by Shopify (empty on success)
    """
    _, errors = await client.mutate(
        PRODUCT_UPDATE_TAGS,
        {"product": {"id": product_id, "tags": tags}},
        "productUpdate"
    )
    if errors:
        logger.warning(f"Failed to update tags of {product_id}: {errors}")
    return errors


async def fetch_product_vendors(client: ShopifyClient) -> List[str]:
    """Vendor names used in the store."""
    data = await client.execute(PRODUCT_VENDORS_QUERY)
    shop = data.get("shop") or {}
    edges = (shop.get("productVendors") or {}).get("edges") or []
    return [edge["node"] for edge in edges]
