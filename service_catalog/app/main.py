"""
Catalog service for the storefront.
"""

import time
from typing import Any, Callable, Dict, Optional

from fastapi import Query, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import NotFoundError, UpstreamUnavailable

from .adapters.commerce_client import CommerceClient
from .caching.models import CatalogSnapshot
from .caching.product_cache import ProductCache
from .caching.snapshot_store import build_snapshot_store
from .domain import catalog


SERVICE_NAME = "catalog"
SERVICE_PORT = 8020


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        commerce_client: Optional[CommerceClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config)

        self.commerce_client = commerce_client or CommerceClient(
            self.config.commerce_url,
            self.config.commerce_consumer_key,
            self.config.commerce_consumer_secret,
            per_page=self.config.commerce_per_page,
            timeout=self.config.commerce_timeout_seconds,
        )
        self.product_cache = ProductCache(
            self.commerce_client.fetch_all_products,
            build_snapshot_store(self.config),
            ttl_seconds=self.config.catalog_ttl,
            grace_seconds=self.config.catalog_grace,
            clock=clock,
            metrics=self.metrics,
        )

        self._setup_catalog_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.catalog_service = self

    async def shutdown(self) -> None:
        await self.product_cache.close()
        await super().shutdown()

    async def _check_dependencies(self) -> Dict[str, Any]:
        snapshot = self.product_cache.peek()
        if snapshot is None:
            cache_status = "empty"
        elif self.product_cache.is_fresh(snapshot):
            cache_status = "ok"
        else:
            cache_status = "stale"
        return {
            "catalog_cache": cache_status,
            "commerce_backend": self.commerce_client.circuit_breaker.get_state()["state"],
        }

    async def _snapshot(self, response: Response) -> CatalogSnapshot:
        snapshot = await self.product_cache.get()
        response.headers["X-Catalog-Stale"] = "true" if snapshot.is_stale else "false"
        return snapshot

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Storefront - Catalog Service",
                "version": "1.0.0",
                "capabilities": ["catalog", "search", "webhook_invalidation"]
            }

        @self.app.get("/api/products")
        async def list_products(
            response: Response,
            category: Optional[str] = Query(None),
            brand: Optional[str] = Query(None, max_length=50),
            q: Optional[str] = Query(None, max_length=200),
            page: Optional[int] = Query(None, ge=1),
            per_page: int = Query(12, ge=1, le=100),
        ):
            """List products, optionally filtered, searched and paginated."""
            snapshot = await self._snapshot(response)
            items = list(snapshot.items)
            if category:
                items = catalog.filter_by_category(items, category)
            if brand:
                items = catalog.filter_by_brand(items, brand)
            if q is not None:
                items = catalog.search(items, q)

            if page is None:
                return items
            return catalog.paginate(items, page, per_page)

        @self.app.get("/api/products/{slug}")
        async def get_product(slug: str, response: Response):
            """Get a single product by slug."""
            snapshot = await self._snapshot(response)
            product = catalog.find_by_slug(snapshot.items, slug)
            if product is None:
                raise NotFoundError("Product not found", {"slug": slug})
            return product

        @self.app.post("/api/webhooks/catalog")
        async def catalog_webhook(request: Request):
            """Catalog change notification: drop the snapshot and warm it again."""
            try:
                event = await request.json()
            except ValueError:
                event = {}
            if not isinstance(event, dict):
                event = {}

            self.logger.info(
                "Catalog webhook received",
                action=event.get("action", "unknown"),
                resource=event.get("resource", "unknown"),
                resource_id=event.get("id", "unknown"),
                topic=request.headers.get("X-WC-Webhook-Topic"),
            )

            await self.product_cache.invalidate()

            warmed_items: Optional[int] = None
            try:
                snapshot = await self.product_cache.get()
                warmed_items = len(snapshot)
            except UpstreamUnavailable as exc:
                self.logger.warning(
                    "Cache cleared but warm-up failed; next request will fetch",
                    error=exc.message
                )

            return {
                "success": True,
                "cache_cleared": True,
                "cache_warmed": warmed_items is not None,
                "products": warmed_items,
                "now": time.time()
            }

        @self.app.get("/api/webhooks/catalog")
        async def catalog_webhook_ping():
            """Webhook endpoint verification."""
            return {
                "status": "active",
                "message": "Catalog webhook endpoint is active",
                "timestamp": time.time()
            }

        @self.app.get("/api/catalog/status")
        async def catalog_status():
            """Product cache statistics."""
            return {
                "cache": self.product_cache.stats(),
                "commerce_backend": self.commerce_client.circuit_breaker.get_state()
            }


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = CatalogService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = CatalogService(get_config(SERVICE_NAME, SERVICE_PORT))
    service.run()
