"""
Catalog Service package for the storefront.

The catalog service answers "give me the current product catalog" from a
read-through cache in front of the commerce backend:
- Coalescing: concurrent misses share one upstream fetch episode
- Persistence: the last good snapshot survives process restarts
- Degradation: stale snapshots are served when the upstream fails

Structure:
- app.main: FastAPI app, routes, and webhook wiring.
- app.adapters: HTTP client for the commerce backend.
- app.caching: Product cache, snapshot model, and snapshot stores.
- app.domain: Product normalization and catalog queries.
"""
