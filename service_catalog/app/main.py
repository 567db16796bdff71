"""
Catalog service: region-priced offer listings, prices and search.
"""

import hmac
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Header, Query, Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import AuthorizationError, ValidationError
from shared.logging import set_country_context

from service_catalog.app.adapters import CatalogDataSource, MongoCatalogSource
from service_catalog.app.caching import CachedQueryExecutor, CachedResult, KeyValueStore, TtlPolicy, create_store
from service_catalog.app.catalog import CatalogQueries, SearchQuery
from service_catalog.app.regions import RegionResolver, ResolvedRegion

SERVICE_NAME = "catalog"
SERVICE_PORT = 8000
CLIENT_MAX_AGE = 60


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        data_source: Optional[CatalogDataSource] = None,
        resolver: Optional[RegionResolver] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        # An empty in-memory store is falsy, so test against None
        if store is None:
            store = create_store(self.config.redis_url, socket_timeout=self.config.cache_timeout_seconds)
        if data_source is None:
            data_source = MongoCatalogSource(
                self.config.mongo_url,
                self.config.mongo_database,
                timeout=self.config.data_source_timeout_seconds,
            )
        self.store = store
        self.data_source = data_source
        self.resolver = resolver or RegionResolver(default_country=self.config.default_country)
        self.ttl_policy = TtlPolicy.from_config(self.config)
        self.executor = CachedQueryExecutor(
            self.store,
            metrics=self.metrics,
            single_flight=self.config.cache_single_flight,
            cache_timeout=self.config.cache_timeout_seconds,
        )
        self.queries = CatalogQueries(self.executor, self.data_source, self.ttl_policy)

        self._setup_catalog_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.catalog_service = self

    async def _on_shutdown(self) -> None:
        for resource in (self.store, self.data_source):
            close = getattr(resource, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                self.logger.warning("Failed to close resource", resource=type(resource).__name__, error=str(exc))

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies: Dict[str, str] = {}
        store_ping = getattr(self.store, "ping", None)
        if store_ping is not None:
            dependencies["cache"] = "ok" if await store_ping() else "error"
        dependencies["data_source"] = "ok" if await self.data_source.ping() else "error"
        return dependencies

    def _resolve_region(self, request: Request, country: Optional[str]) -> ResolvedRegion:
        """Resolve the caller's region from the query parameter or cookie."""
        cookie_country = request.cookies.get(self.config.country_cookie_name)
        resolved = self.resolver.resolve(country, cookie_country)
        set_country_context(resolved.country)
        return resolved

    def _page(self, page: int, limit: int):
        return max(page, 1), min(max(limit, 1), self.config.max_page_limit)

    @staticmethod
    def _respond(result: CachedResult) -> JSONResponse:
        return JSONResponse(
            content=result.value,
            headers={
                "Cache-Control": f"public, max-age={CLIENT_MAX_AGE}",
                "X-Cache": "HIT" if result.cached else "MISS",
            },
        )

    def _admin_token_valid(self, supplied: Optional[str]) -> bool:
        expected = self.config.admin_token
        if not expected or not supplied:
            return False
        # Header values may carry non-ASCII text; compare_digest only accepts ASCII str
        return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))

    @staticmethod
    def _parse_since(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        candidate = value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValidationError("Invalid since timestamp", {"since": value}) from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _setup_catalog_routes(self):
        """Set up catalog routes."""

        @self.app.get("/regions")
        async def list_regions():
            """All pricing regions in table order."""
            return {"regions": [region.to_dict() for region in self.resolver.regions()]}

        @self.app.get("/regions/resolve")
        async def resolve_region(request: Request, country: Optional[str] = None):
            """Resolve the caller's pricing region."""
            return self._resolve_region(request, country).to_dict()

        @self.app.get("/offers")
        async def list_offers(
            request: Request,
            country: Optional[str] = None,
            page: int = Query(default=1),
            limit: int = Query(default=10),
        ):
            """Latest offers with their regional price."""
            resolved = self._resolve_region(request, country)
            page, limit = self._page(page, limit)
            return self._respond(await self.queries.list_offers(resolved.region, page, limit))

        @self.app.get("/offers/upcoming")
        async def upcoming_offers(
            request: Request,
            country: Optional[str] = None,
            page: int = Query(default=1),
            limit: int = Query(default=10),
        ):
            resolved = self._resolve_region(request, country)
            page, limit = self._page(page, limit)
            return self._respond(await self.queries.upcoming(resolved.region, page, limit))

        @self.app.get("/offers/latest-released")
        async def latest_released(request: Request, country: Optional[str] = None):
            resolved = self._resolve_region(request, country)
            return self._respond(await self.queries.latest_released(resolved.region))

        @self.app.get("/offers/featured-discounts")
        async def featured_discounts(request: Request, country: Optional[str] = None):
            resolved = self._resolve_region(request, country)
            return self._respond(await self.queries.featured_discounts(resolved.region))

        @self.app.get("/offers/{offer_id}")
        async def get_offer(offer_id: str):
            return self._respond(await self.queries.get_offer(offer_id))

        @self.app.get("/offers/{offer_id}/price")
        async def get_offer_price(request: Request, offer_id: str, country: Optional[str] = None):
            """Current price of an offer in the caller's region."""
            resolved = self._resolve_region(request, country)
            return self._respond(await self.queries.get_offer_price(offer_id, resolved.region))

        @self.app.get("/offers/{offer_id}/regional-price")
        async def get_regional_prices(offer_id: str, country: Optional[str] = None):
            """Price range in the country's region, or current price in every region."""
            if country:
                resolved = self.resolver.resolve(country)
                set_country_context(resolved.country)
                return self._respond(await self.queries.get_regional_price(offer_id, resolved.region))
            return self._respond(await self.queries.get_regional_prices(offer_id))

        @self.app.get("/offers/{offer_id}/price-stats")
        async def get_price_stats(request: Request, offer_id: str, country: Optional[str] = None):
            resolved = self._resolve_region(request, country)
            return self._respond(await self.queries.get_price_stats(offer_id, resolved.region))

        @self.app.get("/offers/{offer_id}/mappings")
        async def get_mappings(offer_id: str):
            return self._respond(await self.queries.get_mappings(offer_id))

        @self.app.get("/offers/{offer_id}/price-history")
        async def get_price_history(
            offer_id: str,
            country: Optional[str] = None,
            region: Optional[str] = None,
            since: Optional[str] = None,
        ):
            """Price history for one region, or for all regions when neither region nor country is given."""
            since_at = self._parse_since(since)
            region_id: Optional[str] = None
            if region:
                region_id = self.resolver.get_region(region).id
            elif country:
                region_id = self.resolver.resolve(country).region

            all_regions = [item.id for item in self.resolver.regions()]
            result = await self.queries.get_price_history(offer_id, region_id, all_regions, since_at)
            return self._respond(result)

        @self.app.post("/search")
        async def search_offers(request: Request, query: SearchQuery, country: Optional[str] = None):
            resolved = self._resolve_region(request, country)
            page, limit = self._page(query.page, query.limit)
            query = query.model_copy(update={"page": page, "limit": limit})
            return self._respond(await self.queries.search(resolved.region, query))

        @self.app.get("/autocomplete")
        async def autocomplete(query: str = Query(default="", max_length=100), limit: int = Query(default=10)):
            term = query.strip()
            if not term:
                return {"elements": [], "total": 0}
            _, limit = self._page(1, limit)
            result = await self.queries.autocomplete(term, limit)
            return JSONResponse(
                content={"elements": result.value, "total": len(result.value)},
                headers={"X-Cache": "HIT" if result.cached else "MISS"},
            )

        @self.app.post("/admin/offers/{offer_id}/refresh")
        async def refresh_offer(offer_id: str, x_admin_token: Optional[str] = Header(default=None)):
            """Re-populate the cached offer document."""
            if not self._admin_token_valid(x_admin_token):
                raise AuthorizationError("Admin token required")
            return {"offer": await self.queries.refresh_offer(offer_id), "refreshed": True}


def create_app(config: Optional[ServiceConfig] = None, **dependencies):
    """Create FastAPI application."""
    service = CatalogService(config, **dependencies)
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
