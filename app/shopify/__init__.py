"""
Shopify API module.
"""

from app.shopify.client import (
    ShopifyClient,
    ShopifyClientError,
    ShopifyAuthError,
    ShopifyRateLimitError,
    normalize_domain,
)
from app.shopify.catalog import (
    RemoteVariant,
    fetch_product_vendors,
    find_variant_by_sku,
    find_variants_by_skus,
    update_product_tags,
    update_variant_price,
)

__all__ = [
    "ShopifyClient",
    "ShopifyClientError",
    "ShopifyAuthError",
    "ShopifyRateLimitError",
    "normalize_domain",
    "RemoteVariant",
    "fetch_product_vendors",
    "find_variant_by_sku",
    "find_variants_by_skus",
    "update_product_tags",
    "update_variant_price",
]
