"""
Tests for the cached catalog read operations.
"""

from datetime import datetime, timedelta, timezone

import pytest

from service_catalog.app.caching import CachedQueryExecutor, MemoryKeyValueStore, TtlClass, TtlPolicy
from service_catalog.app.catalog import CatalogQueries, SearchQuery
from shared.errors import DataSourceError, NotFoundError
from shared.test_helpers import CatalogDataFactory, FakeCatalogSource, FakeClock

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
ALL_REGIONS = ["EURO", "US", "GB"]


def _at(minutes):
    return CatalogDataFactory.BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture
def source():
    offers = [
        CatalogDataFactory.offer("a", "Alpha Quest", lastModifiedDate="2024-06-01T10:00:00.000Z"),
        CatalogDataFactory.offer("b", "Beta Racer", lastModifiedDate="2024-06-01T11:00:00.000Z"),
        CatalogDataFactory.offer("c", "Alpha Legends", lastModifiedDate="2024-06-01T09:00:00.000Z"),
        CatalogDataFactory.offer(
            "u",
            "Upcoming Saga",
            lastModifiedDate="2024-06-01T08:00:00.000Z",
            releaseDate="2024-07-01T00:00:00.000Z",
        ),
    ]
    prices = [
        CatalogDataFactory.price("a", "EURO", currency="EUR", updated_at=_at(0)),
        CatalogDataFactory.price("a", "EURO", original=1999, currency="EUR", updated_at=_at(10)),
        CatalogDataFactory.price("a", "US", updated_at=_at(0)),
        CatalogDataFactory.price("b", "US", discount_price=999, updated_at=_at(5)),
        CatalogDataFactory.price("c", "US", discount_price=1499, updated_at=_at(20)),
    ]
    history = [
        CatalogDataFactory.price("a", "EURO", currency="EUR", updated_at=_at(-600)),
        CatalogDataFactory.price("a", "US", updated_at=_at(-300)),
        CatalogDataFactory.price("a", "US", discount_price=1999, updated_at=_at(-200)),
        CatalogDataFactory.price("a", "US", updated_at=_at(-60)),
    ]
    positions = [
        {"offerId": "b", "position": 1},
        {"offerId": "c", "position": 2},
        {"offerId": "a", "position": 3},
        {"offerId": "u", "position": 0},
    ]
    mappings = {"a": {"sandboxId": "sb-a", "pageSlug": "alpha-quest"}}
    return FakeCatalogSource(offers, prices, history, positions, mappings)


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def queries(store, source):
    executor = CachedQueryExecutor(store)
    return CatalogQueries(executor, source, TtlPolicy(), clock=lambda: NOW)


class TestListOffers:

    @pytest.mark.asyncio
    async def test_lists_latest_offers_with_regional_price(self, queries):
        result = await queries.list_offers("EURO", 1, 2)

        page = result.value
        assert result.cached is False
        assert result.key == "offers-list:EURO:1:2:v0.1"
        assert [item["id"] for item in page["elements"]] == ["b", "a"]
        assert page["elements"][0]["price"] is None
        assert page["elements"][1]["price"]["price"]["originalPrice"] == 1999
        assert page["total"] == 4
        assert page["page"] == 1 and page["limit"] == 2

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, queries, source):
        await queries.list_offers("EURO", 1, 2)
        result = await queries.list_offers("EURO", 1, 2)

        assert result.cached is True
        assert source.call_count("list_offers") == 1

    @pytest.mark.asyncio
    async def test_pages_are_cached_separately(self, queries, source):
        first = await queries.list_offers("EURO", 1, 2)
        second = await queries.list_offers("EURO", 2, 2)

        assert source.call_count("list_offers") == 2
        assert [item["id"] for item in second.value["elements"]] == ["c", "u"]
        assert first.key != second.key

    @pytest.mark.asyncio
    async def test_regions_are_cached_separately(self, queries):
        euro = await queries.list_offers("EURO", 1, 10)
        us = await queries.list_offers("US", 1, 10)

        assert us.cached is False
        assert euro.value != us.value

    @pytest.mark.asyncio
    async def test_data_source_failure_propagates(self, queries, source, store):
        source.fail = True

        with pytest.raises(DataSourceError):
            await queries.list_offers("EURO", 1, 10)

        assert len(store) == 0


class TestOffer:

    @pytest.mark.asyncio
    async def test_get_offer(self, queries):
        result = await queries.get_offer("a")

        assert result.value["title"] == "Alpha Quest"
        assert result.key == "offer:a:all:v0.1"

    @pytest.mark.asyncio
    async def test_missing_offer_is_not_cached(self, queries, source, store):
        for _ in range(2):
            with pytest.raises(NotFoundError):
                await queries.get_offer("nope")

        assert source.call_count("get_offer") == 2
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_refresh_offer_replaces_cached_copy(self, queries, source):
        await queries.get_offer("a")
        source.offers[0]["title"] = "Alpha Quest Remastered"

        refreshed = await queries.refresh_offer("a")
        cached = await queries.get_offer("a")

        assert refreshed["title"] == "Alpha Quest Remastered"
        assert cached.cached is True
        assert cached.value["title"] == "Alpha Quest Remastered"

    @pytest.mark.asyncio
    async def test_refresh_missing_offer(self, queries):
        with pytest.raises(NotFoundError):
            await queries.refresh_offer("nope")


class TestPrices:

    @pytest.mark.asyncio
    async def test_offer_price_picks_latest(self, queries):
        result = await queries.get_offer_price("a", "EURO")

        assert result.value["price"]["originalPrice"] == 1999
        assert result.key == "offer-price:a:EURO:v0.1"

    @pytest.mark.asyncio
    async def test_offer_price_missing_in_region(self, queries):
        with pytest.raises(NotFoundError) as excinfo:
            await queries.get_offer_price("b", "EURO")

        assert excinfo.value.details == {"offerId": "b", "region": "EURO"}

    @pytest.mark.asyncio
    async def test_regional_prices(self, queries):
        result = await queries.get_regional_prices("a")

        assert set(result.value) == {"EURO", "US"}
        assert result.value["EURO"]["price"]["originalPrice"] == 1999

    @pytest.mark.asyncio
    async def test_empty_regional_prices_not_cached(self, queries, source):
        await queries.get_regional_prices("u")
        result = await queries.get_regional_prices("u")

        assert result.value == {}
        assert result.cached is False
        assert source.call_count("find_offer_prices") == 2

    @pytest.mark.asyncio
    async def test_regional_price_summary_since_release(self, queries, source):
        result = await queries.get_regional_price("a", "US")

        assert result.key == "regional-price:a:US:v0.2"
        assert result.value["currentPrice"]["updatedAt"] == CatalogDataFactory.iso(_at(-60))
        assert result.value["maxPrice"] == 2999
        assert result.value["minPrice"] == 1999
        released = datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc)
        assert source.calls[-1] == ("find_price_history", ("a", ("US",), released, NOW))

    @pytest.mark.asyncio
    async def test_regional_price_falls_back_to_full_history(self, queries, source):
        source.history.append(
            CatalogDataFactory.price("c", "US", discount_price=999, updated_at=_at(-60 * 24 * 40))
        )

        result = await queries.get_regional_price("c", "US")

        assert result.value["minPrice"] == 999
        assert source.call_count("find_price_history") == 2
        assert source.calls[-1] == ("find_price_history", ("c", ("US",), None, None))

    @pytest.mark.asyncio
    async def test_regional_price_unreleased_offer_uses_full_history(self, queries, source):
        with pytest.raises(NotFoundError) as excinfo:
            await queries.get_regional_price("u", "US")

        assert excinfo.value.details == {"offerId": "u", "region": "US"}
        assert source.call_count("find_price_history") == 1

    @pytest.mark.asyncio
    async def test_missing_regional_price_not_cached(self, queries, source, store):
        for _ in range(2):
            with pytest.raises(NotFoundError):
                await queries.get_regional_price("a", "GB")

        assert len(store) == 0
        assert source.call_count("get_offer") == 2


class TestPriceStats:

    @pytest.mark.asyncio
    async def test_price_stats(self, queries):
        result = await queries.get_price_stats("a", "US")

        assert result.key == "price-stats:a:US:v0.1"
        assert result.value["current"]["price"]["discountPrice"] == 2999
        assert result.value["lowest"]["price"]["discountPrice"] == 1999
        assert result.value["lastDiscount"]["updatedAt"] == CatalogDataFactory.iso(_at(-200))

    @pytest.mark.asyncio
    async def test_price_stats_without_discount_history(self, queries):
        result = await queries.get_price_stats("c", "US")

        assert result.value["current"]["price"]["discountPrice"] == 1499
        assert result.value["lowest"] is None
        assert result.value["lastDiscount"] is None

    @pytest.mark.asyncio
    async def test_price_stats_for_missing_offer(self, queries, source):
        with pytest.raises(NotFoundError):
            await queries.get_price_stats("nope", "US")

        assert source.call_count("lowest_discounted_price") == 0


class TestMappings:

    @pytest.mark.asyncio
    async def test_mappings(self, queries):
        result = await queries.get_mappings("a")

        assert result.key == "mappings:a:all:v0.1"
        assert result.value == {"id": "a", "sandboxId": "sb-a", "pageSlug": "alpha-quest"}

    @pytest.mark.asyncio
    async def test_missing_mappings(self, queries, store):
        with pytest.raises(NotFoundError) as excinfo:
            await queries.get_mappings("b")

        assert excinfo.value.message == "Mappings not found"
        assert len(store) == 0


class TestEntryLifetimes:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def timed_queries(self, clock, source):
        executor = CachedQueryExecutor(MemoryKeyValueStore(clock=clock))
        return CatalogQueries(executor, source, TtlPolicy(), clock=lambda: NOW)

    @pytest.mark.asyncio
    async def test_price_stats_held_for_an_hour(self, timed_queries, clock):
        await timed_queries.get_price_stats("a", "US")

        clock.advance(3599)
        assert (await timed_queries.get_price_stats("a", "US")).cached is True
        clock.advance(1)
        assert (await timed_queries.get_price_stats("a", "US")).cached is False

    @pytest.mark.asyncio
    async def test_mappings_held_for_a_day(self, timed_queries, clock):
        await timed_queries.get_mappings("a")

        clock.advance(3600)
        assert (await timed_queries.get_mappings("a")).cached is True
        clock.advance(86400 - 3600)
        assert (await timed_queries.get_mappings("a")).cached is False

    @pytest.mark.asyncio
    async def test_regional_price_held_for_an_hour(self, timed_queries, clock):
        await timed_queries.get_regional_price("a", "US")

        clock.advance(3599)
        assert (await timed_queries.get_regional_price("a", "US")).cached is True
        clock.advance(1)
        assert (await timed_queries.get_regional_price("a", "US")).cached is False


class TestPriceHistory:

    @pytest.mark.asyncio
    async def test_single_region_history(self, queries, source):
        result = await queries.get_price_history("a", "US", ALL_REGIONS)

        assert len(result.value) == 3
        assert all(record["region"] == "US" for record in result.value)
        assert source.calls[-1] == ("find_price_history", ("a", ("US",), None, None))

    @pytest.mark.asyncio
    async def test_all_regions_history_is_grouped(self, queries):
        result = await queries.get_price_history("a", None, ALL_REGIONS)

        assert set(result.value) == {"EURO", "US"}
        assert result.key.startswith("price-history:a:all:")

    @pytest.mark.asyncio
    async def test_since_filters_and_changes_key(self, queries):
        since = _at(-120)

        unlimited = await queries.get_price_history("a", "US", ALL_REGIONS)
        recent = await queries.get_price_history("a", "US", ALL_REGIONS, since)

        assert recent.key != unlimited.key
        assert len(recent.value) == 1


class TestListings:

    @pytest.mark.asyncio
    async def test_upcoming_uses_injected_clock(self, queries, source):
        result = await queries.upcoming("US", 1, 10)

        assert [item["id"] for item in result.value["elements"]] == ["u"]
        assert source.calls[0] == ("upcoming_offers", (0, 10, NOW))

    @pytest.mark.asyncio
    async def test_latest_released(self, queries):
        result = await queries.latest_released("US")

        ids = [item["id"] for item in result.value["elements"]]
        assert "u" not in ids
        assert result.key == "latest-released:US:-:25:v0.1"

    @pytest.mark.asyncio
    async def test_featured_discounts_follow_position_order(self, queries):
        result = await queries.featured_discounts("US")

        elements = result.value["elements"]
        assert [item["id"] for item in elements] == ["b", "c"]
        assert [item["position"] for item in elements] == [1, 2]
        assert elements[1]["price"]["price"]["discountPrice"] == 1499
        assert result.key == "featured-discounts:US:-:20:v0.3"

    @pytest.mark.asyncio
    async def test_featured_discounts_only_base_games_and_dlc(self, queries, source):
        source.offers[2]["offerType"] = "ADD_ON"
        source.offers[1]["offerType"] = "DLC"

        result = await queries.featured_discounts("US")

        assert [item["id"] for item in result.value["elements"]] == ["b"]
        get_offers = [args for name, args in source.calls if name == "get_offers"]
        assert get_offers == [(("b", "c", "a"), ("BASE_GAME", "DLC"))]

    @pytest.mark.asyncio
    async def test_featured_discounts_skip_unknown_offers(self, queries, source):
        source.positions.append({"offerId": "ghost", "position": 4})
        source.prices.append(CatalogDataFactory.price("ghost", "US", discount_price=1, updated_at=_at(30)))

        result = await queries.featured_discounts("US")

        assert [item["id"] for item in result.value["elements"]] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_featured_discounts_without_positions(self, queries, source):
        source.positions.clear()

        result = await queries.featured_discounts("US")

        assert result.value == {"elements": []}
        assert source.call_count("get_offers") == 0


class TestSearch:

    @pytest.mark.asyncio
    async def test_search_by_title(self, queries):
        result = await queries.search("US", SearchQuery(title="alpha"))

        assert result.value["total"] == 2
        assert {item["id"] for item in result.value["elements"]} == {"a", "c"}

    @pytest.mark.asyncio
    async def test_equivalent_queries_share_entry(self, queries, source):
        await queries.search("US", SearchQuery(title="alpha", offerType="BASE_GAME"))
        result = await queries.search("US", SearchQuery(offerType="BASE_GAME", title="alpha"))

        assert result.cached is True
        assert source.call_count("search_offers") == 1

    @pytest.mark.asyncio
    async def test_different_filters_do_not_share_entry(self, queries, source):
        await queries.search("US", SearchQuery(title="alpha"))
        await queries.search("US", SearchQuery(title="beta"))

        assert source.call_count("search_offers") == 2


class TestAutocomplete:

    @pytest.mark.asyncio
    async def test_term_is_normalised(self, queries, source):
        await queries.autocomplete("  Alpha ")
        result = await queries.autocomplete("alpha")

        assert result.cached is True
        assert len(result.value) == 2
        assert source.calls[0] == ("autocomplete", ("alpha", 10))

    @pytest.mark.asyncio
    async def test_empty_suggestions_not_cached(self, queries, source):
        await queries.autocomplete("zzz")
        await queries.autocomplete("zzz")

        assert source.call_count("autocomplete") == 2


@pytest.mark.asyncio
async def test_ttl_overrides_apply(source):
    store = MemoryKeyValueStore()
    executor = CachedQueryExecutor(store)
    queries = CatalogQueries(executor, source, TtlPolicy({TtlClass.SHORT_LISTING: 5}), clock=lambda: NOW)

    await queries.list_offers("US", 1, 10)

    assert queries.ttl_policy.seconds(TtlClass.SHORT_LISTING) == 5
    assert TtlPolicy().as_dict()["aggregate_stats"] == 3600
