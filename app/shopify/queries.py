"""
GraphQL query strings for Shopify Admin API.
"""


# Variant lookup by SKU search, with the fields needed to price and tag it
VARIANTS_BY_SKU_QUERY = '''
query variantsBySku($query: String!, $first: Int!) {
  productVariants(first: $first, query: $query) {
    edges {
      node {
        id
        sku
        price
        product {
          id
          title
          tags
        }
      }
    }
  }
}
'''

# Store vendors for the offer form's autocomplete
PRODUCT_VENDORS_QUERY = '''
query {
  shop {
    productVendors(first: 250) {
      edges {
        node
      }
    }
  }
}
'''


def quote_search_value(value: str) -> str:
    """Quote a value for Shopify search syntax."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_sku_search(skus) -> str:
    """
    Build a productVariants search string matching any of the SKUs.

    Args:
        skus: One SKU or an iterable of SKUs

    Returns:
        Search string, e.g. 'sku:"A" OR sku:"B"'
    """
    if isinstance(skus, str):
        skus = [skus]
    return " OR ".join(f"sku:{quote_search_value(sku)}" for sku in skus)
