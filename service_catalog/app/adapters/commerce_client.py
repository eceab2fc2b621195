"""
Commerce backend client for the Catalog Service.
"""

import math
from typing import Any, Dict, List, Optional, Tuple
import httpx

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from shared.circuit_breaker import CircuitBreaker
from shared.retry import retry_on_exception, RetryConfig
from ..domain.products import normalize_product


SERVICE_NAME = "commerce_backend"


class CommerceClient:
    """Client for the WooCommerce REST products endpoint.

    ``fetch_all_products`` is the product cache's upstream: it walks every
    page and returns the merged, normalized catalog, or raises. A failure on
    any page fails the whole fetch.
    """

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        *,
        per_page: int = 100,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.products_url = f"{self.base_url}/wp-json/wc/v3/products"
        self.per_page = per_page
        self.timeout = timeout
        self._auth = httpx.BasicAuth(consumer_key, consumer_secret)
        self._transport = transport
        self.logger = get_logger("catalog.commerce_client")

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name=SERVICE_NAME
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=self._auth,
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": "Storefront-Catalog/1.0", "Accept": "application/json"},
        )

    async def fetch_all_products(self) -> List[Dict[str, Any]]:
        """Fetch and normalize every product across all pages."""
        try:
            async with self._client() as client:
                raw_products, total_pages = await self._fetch_page(client, 1, self.per_page)
                for page in range(2, total_pages + 1):
                    products, _ = await self._fetch_page(client, page, self.per_page)
                    raw_products.extend(products)
        except ExternalServiceError:
            raise
        except Exception as exc:
            self.logger.error("Commerce backend fetch failed", error=str(exc), error_type=type(exc).__name__)
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message=str(exc),
                details={"url": self.products_url}
            ) from exc

        products = self._merge(raw_products)
        self.logger.info("Fetched catalog from commerce backend", products=len(products), pages=total_pages)
        return products

    async def count_products(self) -> Dict[str, int]:
        """Report the backend's product and page totals."""
        async with self._client() as client:
            response = await self._request(client, 1, 1)
        total = self._header_int(response, "X-WP-Total", 0)
        return {
            "total_products": total,
            "per_page": self.per_page,
            "pages_to_fetch": math.ceil(total / self.per_page),
        }

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _fetch_page(self, client: httpx.AsyncClient, page: int, per_page: int) -> Tuple[List[Dict[str, Any]], int]:
        response = await self.circuit_breaker.call(self._request, client, page, per_page)

        try:
            products = response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message="Failed to parse response",
                details={"page": page, "body": response.text[:200]}
            ) from exc

        if not isinstance(products, list):
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message="Unexpected payload shape",
                details={"page": page, "type": type(products).__name__}
            )

        total_pages = self._header_int(response, "X-WP-TotalPages", 1)
        self.logger.debug("Fetched product page", page=page, total_pages=total_pages, products=len(products))
        return products, total_pages

    async def _request(self, client: httpx.AsyncClient, page: int, per_page: int) -> httpx.Response:
        params = {"page": page, "per_page": per_page}
        response = await client.get(self.products_url, params=params)

        if response.is_success:
            return response

        self.logger.error(
            "Commerce backend request failed",
            url=self.products_url,
            page=page,
            status_code=response.status_code,
            response=response.text[:500]
        )
        message = f"Unexpected status {response.status_code}"
        if response.status_code in (502, 503, 504):
            message = f"Server error {response.status_code}: backend temporarily unavailable"
        raise ExternalServiceError(
            service=SERVICE_NAME,
            message=message,
            details={"status_code": response.status_code, "page": page, "body": response.text[:200]}
        )

    def _merge(self, raw_products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Normalize pages in order, keeping the first copy of repeated ids."""
        merged: List[Dict[str, Any]] = []
        seen = set()
        duplicates = 0
        for raw in raw_products:
            if not isinstance(raw, dict) or "id" not in raw:
                raise ExternalServiceError(
                    service=SERVICE_NAME,
                    message="Product without id in payload",
                    details={"position": len(merged) + duplicates}
                )
            if raw["id"] in seen:
                duplicates += 1
                continue
            seen.add(raw["id"])
            merged.append(normalize_product(raw))

        if duplicates:
            # Products shifting between pages while paging.
            self.logger.warning("Dropped duplicate products across pages", duplicates=duplicates)
        return merged

    @staticmethod
    def _header_int(response: httpx.Response, name: str, default: int) -> int:
        value = response.headers.get(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message=f"Invalid {name} header",
                details={"value": value}
            )
