"""
Catalog Service package for the storefront data backend.

The service answers catalog reads priced for the caller's region:
- Region resolution: country parameter or cookie -> pricing region
- Response caching: cache-aside over Redis with per-operation TTLs
- Price merge: offers joined to the region's latest price records

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.regions: Static region table and resolver.
- app.caching: Cache keys, TTL policy, key-value stores and the executor.
- app.pricing: Offer/price join helpers.
- app.catalog: Cached read operations composed from the above.
- app.adapters: Document-store data source.
"""
