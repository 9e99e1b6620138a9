"""
Shopify GraphQL Admin API client for the single configured store.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

# Points left in the GraphQL cost bucket below which we start warning
LOW_POINTS_WARNING = 100


class ShopifyClientError(Exception):
    """Base exception for Shopify client errors."""
    pass


class ShopifyAuthError(ShopifyClientError):
    """Token rejected or store not configured."""
    pass


class ShopifyRateLimitError(ShopifyClientError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


def normalize_domain(shop_domain: str) -> str:
    """Strip scheme and trailing slash, append .myshopify.com to bare handles."""
    domain = shop_domain.strip().lower()
    for scheme in ("https://", "http://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
    domain = domain.rstrip("/")
    if domain and "." not in domain:
        domain = f"{domain}.myshopify.com"
    return domain


class ShopifyClient:
    """
    Async client for one store's GraphQL Admin API.

    Rate limits (HTTP 429 or a throttled GraphQL response) and network
    errors are retried with exponential backoff. Authentication failures
    and GraphQL errors are raised at once.
    """

    API_VERSION = "2025-01"
    MAX_RETRIES = 5
    BASE_RETRY_DELAY = 1.0  # seconds

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            shop_domain: "mystore", "mystore.myshopify.com" or a URL
            access_token: Admin API access token (shpat_...)
            transport: Optional httpx transport (mock transports in tests)
        """
        self.shop_domain = normalize_domain(shop_domain)
        self.access_token = access_token
        self.graphql_url = (
            f"https://{self.shop_domain}/admin/api/{self.API_VERSION}/graphql.json"
        )
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings) -> "ShopifyClient":
        """Client for the store named in the app settings."""
        if not settings.shopify_domain or not settings.shopify_access_token:
            logger.warning("SHOPIFY_DOMAIN or SHOPIFY_ACCESS_TOKEN not set, store calls will fail")
        return cls(settings.shopify_domain, settings.shopify_access_token)

    @property
    def configured(self) -> bool:
        return bool(self.shop_domain and self.access_token)

    def _http_client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(60.0, connect=10.0),
                headers={"X-Shopify-Access-Token": self.access_token},
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a query or mutation and return the `data` part of the response.

        Raises:
            ShopifyAuthError: Store not configured, or the token was rejected
            ShopifyRateLimitError: Still throttled after MAX_RETRIES attempts
            ShopifyClientError: GraphQL errors, HTTP errors, bad responses
        """
        if not self.configured:
            raise ShopifyAuthError("Shopify domain or access token not configured")

        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        last_error: ShopifyClientError = ShopifyClientError("Max retries exceeded")

        for attempt in range(self.MAX_RETRIES):
            try:
                body = await self._post(payload)
            except ShopifyRateLimitError as e:
                last_error = e
                delay = e.retry_after if e.retry_after is not None else self._backoff(attempt)
                logger.warning(
                    f"Rate limited by {self.shop_domain}, waiting {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.MAX_RETRIES})"
                )
            except httpx.RequestError as e:
                last_error = ShopifyClientError(f"Request error: {e}")
                delay = self._backoff(attempt)
                logger.warning(f"Request error, retrying in {delay:.1f}s: {e}")
            else:
                self._warn_on_low_points(body)
                return body.get("data") or {}

            await asyncio.sleep(delay)

        raise last_error

    async def mutate(
        self,
        mutation: str,
        variables: Dict[str, Any],
        field: str,
    ) -> Tuple[Dict[str, Any], List[str]]:
        """
        Run a mutation and split its payload from its userErrors.

        Args:
            mutation: GraphQL mutation string
            variables: Mutation variables
            field: Top-level field of the mutation (e.g. "productUpdate")

        Returns:
            (payload of `field`, user error messages)
        """
        data = await self.execute(mutation, variables)
        result = data.get(field) or {}
        errors = [e.get("message", str(e)) for e in result.get("userErrors") or []]
        return result, errors

    def _backoff(self, attempt: int) -> float:
        return self.BASE_RETRY_DELAY * (2 ** attempt)

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """One request, mapped to the client's exception types."""
        response = await self._http_client().post(self.graphql_url, json=payload)

        if response.status_code in (401, 403):
            raise ShopifyAuthError(f"Authentication failed for {self.shop_domain}")
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise ShopifyRateLimitError(
                "Rate limit exceeded",
                retry_after=float(retry_after) if retry_after else None
            )
        if response.is_error:
            raise ShopifyClientError(f"HTTP {response.status_code} from {self.shop_domain}")

        try:
            body = response.json()
        except ValueError as e:
            raise ShopifyClientError(f"Invalid response body: {e}") from e

        errors = body.get("errors") or []
        if isinstance(errors, str):
            errors = [{"message": errors}]
        messages = [e.get("message", str(e)) for e in errors]
        if any("throttl" in msg.lower() for msg in messages):
            raise ShopifyRateLimitError(f"GraphQL throttled: {messages}")
        if messages:
            raise ShopifyClientError(f"GraphQL errors: {messages}")

        return body

    def _warn_on_low_points(self, body: Dict[str, Any]) -> None:
        cost = (body.get("extensions") or {}).get("cost") or {}
        available = (cost.get("throttleStatus") or {}).get("currentlyAvailable")
        if available is not None and available < LOW_POINTS_WARNING:
            logger.warning(f"Low rate limit points: {available} available")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
