"""
Shared fixtures: a temporary database and an in-memory Shopify store.
"""

import re
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from app.db import SQLiteDatabase
from app.shopify import ShopifyClient, ShopifyClientError

SKU_TERM = re.compile(r'sku:"((?:[^"\\]|\\.)*)"')


class FakeShopifyClient(ShopifyClient):
    """
    ShopifyClient whose `execute` answers the queries and mutations the app
    sends from a dict of products instead of the network.
    """

    def __init__(self):
        super().__init__("teststore", "shpat_test")
        self.variants: Dict[str, dict] = {}  # variant id -> {sku, price, product_id}
        self.products: Dict[str, dict] = {}  # product id -> {title, tags}
        self.vendors: List[str] = ["Acme", "Globex"]
        self.calls: List[tuple] = []
        self.price_user_errors: Dict[str, str] = {}  # sku -> message
        self.lookup_errors: Dict[str, Exception] = {}  # sku -> raised on lookup
        self.closed = False

    def add_product(
        self,
        sku: str,
        price: str,
        tags: Optional[List[str]] = None,
        title: Optional[str] = None,
    ) -> str:
        number = len(self.variants) + 1
        product_id = f"gid://shopify/Product/{number}"
        variant_id = f"gid://shopify/ProductVariant/{number}"
        self.products[product_id] = {"title": title or f"Product {sku}", "tags": list(tags or [])}
        self.variants[variant_id] = {"sku": sku, "price": price, "product_id": product_id}
        return variant_id

    def price_of(self, sku: str) -> str:
        for variant in self.variants.values():
            if variant["sku"] == sku:
                return variant["price"]
        raise KeyError(sku)

    def tags_of(self, sku: str) -> List[str]:
        for variant in self.variants.values():
            if variant["sku"] == sku:
                return self.products[variant["product_id"]]["tags"]
        raise KeyError(sku)

    def calls_named(self, name: str) -> List[dict]:
        return [variables for call, variables in self.calls if call == name]

    def _node(self, variant_id: str) -> dict:
        variant = self.variants[variant_id]
        product = self.products[variant["product_id"]]
        return {
            "id": variant_id,
            "sku": variant["sku"],
            "price": variant["price"],
            "product": {
                "id": variant["product_id"],
                "title": product["title"],
                "tags": list(product["tags"]),
            },
        }

    async def execute(self, query: str, variables: Optional[dict] = None) -> dict:
        variables = variables or {}

        if "productVariantsBulkUpdate" in query:
            self.calls.append(("price", variables))
            updated = []
            errors = []
            for change in variables["variants"]:
                variant = self.variants[change["id"]]
                if variant["sku"] in self.price_user_errors:
                    errors.append({"field": ["price"], "message": self.price_user_errors[variant["sku"]]})
                    continue
                variant["price"] = change["price"]
                updated.append({"id": change["id"], "price": change["price"]})
            return {"productVariantsBulkUpdate": {"productVariants": updated, "userErrors": errors}}

        if "productUpdate" in query:
            self.calls.append(("tags", variables))
            product = variables["product"]
            self.products[product["id"]]["tags"] = list(product["tags"])
            return {"productUpdate": {"product": product, "userErrors": []}}

        if "productVariants(" in query:
            self.calls.append(("lookup", variables))
            wanted = [term.replace('\\"', '"') for term in SKU_TERM.findall(variables["query"])]
            for sku in wanted:
                if sku in self.lookup_errors:
                    raise self.lookup_errors[sku]
            edges = [
                {"node": self._node(variant_id)}
                for variant_id, variant in self.variants.items()
                if variant["sku"] in wanted
            ]
            return {"productVariants": {"edges": edges[:variables["first"]]}}

        if "productVendors" in query:
            self.calls.append(("vendors", variables))
            return {"shop": {"productVendors": {"edges": [{"node": v} for v in self.vendors]}}}

        raise ShopifyClientError(f"Unexpected query: {query[:40]}")

    async def close(self):
        self.closed = True


@pytest.fixture
def shopify():
    return FakeShopifyClient()


@pytest_asyncio.fixture
async def db(tmp_path):
    database = SQLiteDatabase(str(tmp_path / "offers.db"))
    await database.initialize()
    yield database
    await database.close()
