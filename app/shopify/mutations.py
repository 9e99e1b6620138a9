"""
GraphQL mutation strings for Shopify Admin API.
"""


# Mutation to update variant prices
PRODUCT_VARIANTS_BULK_UPDATE = '''
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants {
      id
      price
    }
    userErrors {
      field
      message
    }
  }
}
'''

# Mutation to replace a product's tag list
PRODUCT_UPDATE_TAGS = '''
mutation productUpdate($product: ProductUpdateInput!) {
  productUpdate(product: $product) {
    product {
      id
      tags
    }
    userErrors {
      field
      message
    }
  }
}
'''
