"""
Catalog read operations: region-priced listings, offer details, price
history, search and autocomplete, each served through the response cache.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from shared.errors import NotFoundError
from shared.logging import get_logger

from ..adapters.data_source import CatalogDataSource, Document
from ..caching import policy as policies
from ..caching.executor import CachedQueryExecutor, CachedResult
from ..caching.keys import QueryParams
from ..caching.policy import OperationPolicy, TtlPolicy
from ..pricing import group_prices_by_region, latest_prices_by_offer, merge_prices, parse_timestamp, price_range
from .models import SearchQuery

LATEST_RELEASED_LIMIT = 25
FEATURED_DISCOUNTS_LIMIT = 20
FEATURED_POSITIONS_LIMIT = 200
FEATURED_OFFER_TYPES = ("BASE_GAME", "DLC")
AUTOCOMPLETE_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogQueries:
    """Coordinates cache reads and document-store lookups for catalog data."""

    def __init__(
        self,
        executor: CachedQueryExecutor,
        data_source: CatalogDataSource,
        ttl_policy: Optional[TtlPolicy] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.executor = executor
        self.data_source = data_source
        self.ttl_policy = ttl_policy or TtlPolicy()
        self.clock = clock
        self.logger = get_logger("catalog.queries")

    async def list_offers(self, region: str, page: int, limit: int) -> CachedResult:
        """Most recently modified offers with their price in ``region``."""

        async def fetch(params: QueryParams) -> Dict[str, Any]:
            offers = await self.data_source.list_offers(_skip(params), params.limit)
            elements = await self._priced(offers, params.region)
            total = await self.data_source.count_offers()
            return {"elements": elements, "page": params.page, "limit": params.limit, "total": total}

        params = QueryParams(region=region, page=page, limit=limit)
        return await self._run(policies.OFFERS_LIST, params, fetch)

    async def get_offer(self, offer_id: str) -> CachedResult:
        result = await self._run(policies.OFFER, QueryParams(ids=(offer_id,)), self._fetch_offer)
        if result.value is None:
            raise NotFoundError("Offer not found", {"offerId": offer_id})
        return result

    async def refresh_offer(self, offer_id: str) -> Dict[str, Any]:
        """Re-populate the cached offer regardless of its remaining TTL."""
        policy = policies.OFFER
        value = await self.executor.refresh(
            policy.name,
            QueryParams(ids=(offer_id,), version=policy.version),
            self.ttl_policy.ttl_for(policy),
            self._fetch_offer,
            cacheable=policy.cacheable,
        )
        if value is None:
            raise NotFoundError("Offer not found", {"offerId": offer_id})
        return value

    async def get_offer_price(self, offer_id: str, region: str) -> CachedResult:
        """Latest price record for one offer in one region."""

        async def fetch(params: QueryParams) -> Optional[Document]:
            prices = await self.data_source.find_prices([offer_id], params.region)
            return latest_prices_by_offer(prices, params.region).get(offer_id)

        result = await self._run(policies.OFFER_PRICE, QueryParams(ids=(offer_id,), region=region), fetch)
        if result.value is None:
            raise NotFoundError("Price not found", {"offerId": offer_id, "region": region})
        return result

    async def get_regional_prices(self, offer_id: str) -> CachedResult:
        """Latest price per region for one offer, keyed by region id."""

        async def fetch(params: QueryParams) -> Dict[str, Document]:
            records = await self.data_source.find_offer_prices(offer_id)
            latest: Dict[str, Document] = {}
            for region, group in group_prices_by_region(records).items():
                price = latest_prices_by_offer(group, region).get(offer_id)
                if price is not None:
                    latest[region] = price
            return latest

        return await self._run(policies.OFFER_REGIONAL_PRICES, QueryParams(ids=(offer_id,)), fetch)

    async def get_regional_price(self, offer_id: str, region: str) -> CachedResult:
        """Current, highest and lowest price of an offer in one region.

        History is taken from the release date up to now for released offers;
        when that window is empty the whole history is used instead.
        """

        async def fetch(params: QueryParams) -> Optional[Dict[str, Any]]:
            offer = await self.data_source.get_offer(offer_id)
            released = (offer or {}).get("releaseDate") or (offer or {}).get("effectiveDate")
            now = self.clock()

            records: List[Document] = []
            if released:
                released_at = parse_timestamp(released)
                if released_at <= now:
                    records = await self.data_source.find_price_history(
                        offer_id, [params.region], since=released_at, until=now
                    )
            if not records:
                records = await self.data_source.find_price_history(offer_id, [params.region])
            return price_range(records)

        result = await self._run(policies.REGIONAL_PRICE, QueryParams(ids=(offer_id,), region=region), fetch)
        if result.value is None:
            raise NotFoundError("Price not found", {"offerId": offer_id, "region": region})
        return result

    async def get_price_stats(self, offer_id: str, region: str) -> CachedResult:
        """Current price, lowest discount ever and last discount in ``region``."""

        async def fetch(params: QueryParams) -> Optional[Dict[str, Any]]:
            if await self.data_source.get_offer(offer_id) is None:
                return None
            current = await self.data_source.find_prices([offer_id], params.region)
            return {
                "current": latest_prices_by_offer(current, params.region).get(offer_id),
                "lowest": await self.data_source.lowest_discounted_price(offer_id, params.region),
                "lastDiscount": await self.data_source.latest_discounted_price(offer_id, params.region),
            }

        result = await self._run(policies.PRICE_STATS, QueryParams(ids=(offer_id,), region=region), fetch)
        if result.value is None:
            raise NotFoundError("Offer not found", {"offerId": offer_id})
        return result

    async def get_mappings(self, offer_id: str) -> CachedResult:
        """Store page mappings; these change rarely and are held for a day."""

        async def fetch(params: QueryParams) -> Optional[Document]:
            return await self.data_source.get_mappings(offer_id)

        result = await self._run(policies.MAPPINGS, QueryParams(ids=(offer_id,)), fetch)
        if result.value is None:
            raise NotFoundError("Mappings not found", {"offerId": offer_id})
        return result

    async def get_price_history(
        self,
        offer_id: str,
        region: Optional[str],
        all_regions: Sequence[str],
        since: Optional[datetime] = None,
    ) -> CachedResult:
        """Price history for one region, or grouped by region when none is given."""
        filters = {"since": since.isoformat() if since else "unlimited"}

        if region:
            async def fetch_region(params: QueryParams) -> List[Document]:
                return await self.data_source.find_price_history(offer_id, [params.region], since)

            params = QueryParams(ids=(offer_id,), region=region, filters=filters)
            return await self._run(policies.PRICE_HISTORY, params, fetch_region)

        async def fetch_all(params: QueryParams) -> Dict[str, List[Document]]:
            records = await self.data_source.find_price_history(offer_id, list(all_regions), since)
            return group_prices_by_region(records)

        params = QueryParams(ids=(offer_id,), filters=filters)
        return await self._run(policies.PRICE_HISTORY_ALL, params, fetch_all)

    async def upcoming(self, region: str, page: int, limit: int) -> CachedResult:
        """Offers with a future release date, soonest first."""

        async def fetch(params: QueryParams) -> Dict[str, Any]:
            offers = await self.data_source.upcoming_offers(_skip(params), params.limit, self.clock())
            elements = await self._priced(offers, params.region)
            return {"elements": elements, "page": params.page, "limit": params.limit}

        params = QueryParams(region=region, page=page, limit=limit)
        return await self._run(policies.UPCOMING, params, fetch)

    async def latest_released(self, region: str) -> CachedResult:

        async def fetch(params: QueryParams) -> Dict[str, Any]:
            offers = await self.data_source.latest_released(params.limit, self.clock())
            return {"elements": await self._priced(offers, params.region)}

        params = QueryParams(region=region, limit=LATEST_RELEASED_LIMIT)
        return await self._run(policies.LATEST_RELEASED, params, fetch)

    async def featured_discounts(self, region: str) -> CachedResult:
        """Featured base games and DLC currently discounted in ``region``.

        Offers come from the featured positions table and are returned in
        position order; offers without a discount in the region are left out.
        """

        async def fetch(params: QueryParams) -> Dict[str, Any]:
            positions: Dict[str, int] = {}
            for entry in await self.data_source.featured_positions(FEATURED_POSITIONS_LIMIT):
                offer_id = entry.get("offerId")
                if offer_id and offer_id not in positions:
                    positions[offer_id] = entry.get("position", 0)
            if not positions:
                return {"elements": []}

            offer_ids = list(positions)
            offers = await self.data_source.get_offers(offer_ids, offer_types=FEATURED_OFFER_TYPES)
            prices = await self.data_source.find_discounted_prices(offer_ids, params.region)
            discounted = latest_prices_by_offer(prices, params.region)

            elements = [
                {**offer, "price": discounted[offer["id"]], "position": positions[offer["id"]]}
                for offer in offers
                if offer["id"] in discounted
            ]
            elements.sort(key=lambda item: item["position"])
            return {"elements": elements[:params.limit]}

        params = QueryParams(region=region, limit=FEATURED_DISCOUNTS_LIMIT)
        return await self._run(policies.FEATURED_DISCOUNTS, params, fetch)

    async def search(self, region: str, query: SearchQuery) -> CachedResult:
        filters = query.filters()

        async def fetch(params: QueryParams) -> Dict[str, Any]:
            offers, total = await self.data_source.search_offers(filters, _skip(params), params.limit)
            elements = await self._priced(offers, params.region)
            return {"elements": elements, "page": params.page, "limit": params.limit, "total": total}

        params = QueryParams(region=region, page=query.page, limit=query.limit, filters=filters)
        return await self._run(policies.SEARCH, params, fetch)

    async def autocomplete(self, term: str, limit: int = AUTOCOMPLETE_LIMIT) -> CachedResult:
        """Title-prefix suggestions. Empty answers are not cached."""
        normalized = term.strip().lower()

        async def fetch(params: QueryParams) -> List[Document]:
            return await self.data_source.autocomplete(normalized, params.limit)

        params = QueryParams(limit=limit, filters={"term": normalized})
        return await self._run(policies.AUTOCOMPLETE, params, fetch)

    async def _fetch_offer(self, params: QueryParams) -> Optional[Document]:
        return await self.data_source.get_offer(params.ids[0])

    async def _priced(self, offers: List[Document], region: str) -> List[Dict[str, Any]]:
        if not offers:
            return []
        prices = await self.data_source.find_prices([offer["id"] for offer in offers], region)
        return merge_prices(offers, prices, region)

    async def _run(self, policy: OperationPolicy, params: QueryParams, fetch) -> CachedResult:
        return await self.executor.execute_with_status(
            policy.name,
            params.with_version(policy.version),
            self.ttl_policy.ttl_for(policy),
            fetch,
            cacheable=policy.cacheable,
        )


def _skip(params: QueryParams) -> int:
    return (params.page - 1) * params.limit
