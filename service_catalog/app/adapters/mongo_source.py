"""
MongoDB-backed catalog data source.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from shared.errors import DataSourceError
from shared.logging import get_logger

from .data_source import Document

OFFERS_COLLECTION = "offers"
PRICES_COLLECTION = "pricev2"
PRICE_HISTORY_COLLECTION = "pricev2_historical"
POSITIONS_COLLECTION = "gamepositions"
MAPPINGS_COLLECTION = "mappings"

SORTABLE_FIELDS = ("lastModifiedDate", "releaseDate", "effectiveDate", "creationDate", "title")

_AUTOCOMPLETE_PROJECTION = {
    "_id": 0,
    "id": 1,
    "namespace": 1,
    "title": 1,
    "offerType": 1,
    "keyImages": 1,
}


class MongoCatalogSource:
    """Catalog queries over the offers and price collections."""

    def __init__(
        self,
        mongo_url: str,
        database: str,
        *,
        timeout: float = 10.0,
        client: Optional[AsyncMongoClient] = None,
    ) -> None:
        self.logger = get_logger("catalog.mongo")
        timeout_ms = int(timeout * 1000)
        self._client = client or AsyncMongoClient(
            mongo_url,
            timeoutMS=timeout_ms,
            serverSelectionTimeoutMS=timeout_ms,
            tz_aware=True,
        )
        self._db = self._client[database]

    async def close(self) -> None:
        await self._client.close()

    async def ping(self) -> bool:
        """Return True when MongoDB answers a ping."""
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as exc:
            self.logger.error("MongoDB health check failed", error=str(exc))
            return False

    async def list_offers(self, skip: int, limit: int) -> List[Document]:
        cursor = (
            self._db[OFFERS_COLLECTION]
            .find({})
            .sort("lastModifiedDate", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return await self._documents("list_offers", cursor.to_list(length=None))

    async def count_offers(self) -> int:
        return await self._run("count_offers", self._db[OFFERS_COLLECTION].count_documents({}))

    async def get_offer(self, offer_id: str) -> Optional[Document]:
        doc = await self._run("get_offer", self._db[OFFERS_COLLECTION].find_one({"id": offer_id}))
        return normalize_document(doc) if doc else None

    async def get_offers(
        self,
        offer_ids: Sequence[str],
        offer_types: Optional[Sequence[str]] = None,
    ) -> List[Document]:
        if not offer_ids:
            return []
        query: Dict[str, Any] = {"id": {"$in": list(offer_ids)}}
        if offer_types:
            query["offerType"] = {"$in": list(offer_types)}
        cursor = self._db[OFFERS_COLLECTION].find(query)
        return await self._documents("get_offers", cursor.to_list(length=None))

    async def find_prices(self, offer_ids: Sequence[str], region: str) -> List[Document]:
        if not offer_ids:
            return []
        cursor = (
            self._db[PRICES_COLLECTION]
            .find({"offerId": {"$in": list(offer_ids)}, "region": region})
            .sort("updatedAt", DESCENDING)
        )
        return await self._documents("find_prices", cursor.to_list(length=None))

    async def find_offer_prices(self, offer_id: str) -> List[Document]:
        cursor = (
            self._db[PRICES_COLLECTION]
            .find({"offerId": offer_id})
            .sort("updatedAt", DESCENDING)
        )
        return await self._documents("find_offer_prices", cursor.to_list(length=None))

    async def find_price_history(
        self,
        offer_id: str,
        regions: Sequence[str],
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Document]:
        query: Dict[str, Any] = {"offerId": offer_id, "region": {"$in": list(regions)}}
        window: Dict[str, datetime] = {}
        if since is not None:
            window["$gte"] = since
        if until is not None:
            window["$lte"] = until
        if window:
            query["updatedAt"] = window
        cursor = self._db[PRICE_HISTORY_COLLECTION].find(query).sort("updatedAt", DESCENDING)
        return await self._documents("find_price_history", cursor.to_list(length=None))

    async def upcoming_offers(self, skip: int, limit: int, now: datetime) -> List[Document]:
        cursor = (
            self._db[OFFERS_COLLECTION]
            .find({"releaseDate": {"$gt": now}})
            .sort("releaseDate", ASCENDING)
            .skip(skip)
            .limit(limit)
        )
        return await self._documents("upcoming_offers", cursor.to_list(length=None))

    async def latest_released(self, limit: int, now: datetime) -> List[Document]:
        cursor = (
            self._db[OFFERS_COLLECTION]
            .find({"releaseDate": {"$lte": now}})
            .sort("releaseDate", DESCENDING)
            .limit(limit)
        )
        return await self._documents("latest_released", cursor.to_list(length=None))

    async def find_discounted_prices(self, offer_ids: Sequence[str], region: str) -> List[Document]:
        if not offer_ids:
            return []
        cursor = (
            self._db[PRICES_COLLECTION]
            .find({"offerId": {"$in": list(offer_ids)}, "region": region, "price.discount": {"$gt": 0}})
            .sort("updatedAt", DESCENDING)
        )
        return await self._documents("find_discounted_prices", cursor.to_list(length=None))

    async def lowest_discounted_price(self, offer_id: str, region: str) -> Optional[Document]:
        return await self._first_discounted("lowest_discounted_price", offer_id, region, "price.discountPrice", ASCENDING)

    async def latest_discounted_price(self, offer_id: str, region: str) -> Optional[Document]:
        return await self._first_discounted("latest_discounted_price", offer_id, region, "updatedAt", DESCENDING)

    async def featured_positions(self, limit: int) -> List[Document]:
        cursor = (
            self._db[POSITIONS_COLLECTION]
            .find({"position": {"$gt": 0}})
            .sort("position", ASCENDING)
            .limit(limit)
        )
        return await self._documents("featured_positions", cursor.to_list(length=None))

    async def get_mappings(self, offer_id: str) -> Optional[Document]:
        doc = await self._run("get_mappings", self._db[MAPPINGS_COLLECTION].find_one({"_id": offer_id}))
        if not doc:
            return None
        # Mappings are keyed by the offer id itself
        return {"id": doc["_id"], **normalize_document(doc)}

    async def _first_discounted(
        self,
        operation: str,
        offer_id: str,
        region: str,
        sort_field: str,
        direction: int,
    ) -> Optional[Document]:
        doc = await self._run(
            operation,
            self._db[PRICE_HISTORY_COLLECTION].find_one(
                {"offerId": offer_id, "region": region, "price.discount": {"$gt": 0}},
                sort=[(sort_field, direction)],
            ),
        )
        return normalize_document(doc) if doc else None

    async def search_offers(
        self,
        filters: Mapping[str, Any],
        skip: int,
        limit: int,
    ) -> Tuple[List[Document], int]:
        query = build_search_query(filters)
        sort_field = filters.get("sortBy") or "lastModifiedDate"
        if sort_field not in SORTABLE_FIELDS:
            raise ValueError(f"Unsupported sort field {sort_field}")
        direction = ASCENDING if filters.get("sortDir") == "asc" else DESCENDING

        collection = self._db[OFFERS_COLLECTION]
        cursor = collection.find(query).sort(sort_field, direction).skip(skip).limit(limit)
        docs = await self._documents("search_offers", cursor.to_list(length=None))
        total = await self._run("search_offers_count", collection.count_documents(query))
        return docs, total

    async def autocomplete(self, term: str, limit: int) -> List[Document]:
        cursor = (
            self._db[OFFERS_COLLECTION]
            .find({"title": {"$regex": f"^{re.escape(term)}", "$options": "i"}}, _AUTOCOMPLETE_PROJECTION)
            .limit(limit)
        )
        return await self._documents("autocomplete", cursor.to_list(length=None))

    async def _run(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except PyMongoError as exc:
            self.logger.error("MongoDB query failed", operation=operation, error=str(exc))
            raise DataSourceError(details={"operation": operation}) from exc

    async def _documents(self, operation: str, awaitable: Awaitable[List[Dict[str, Any]]]) -> List[Document]:
        docs = await self._run(operation, awaitable)
        return [normalize_document(doc) for doc in docs]


def build_search_query(filters: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate search filters into a MongoDB query document."""
    query: Dict[str, Any] = {}

    title = filters.get("title")
    if title:
        query["title"] = {"$regex": re.escape(title), "$options": "i"}

    offer_type = filters.get("offerType")
    if offer_type:
        query["offerType"] = offer_type

    tags = filters.get("tags")
    if tags:
        query["tags.id"] = {"$all": list(tags)}

    return query


def normalize_document(doc: Mapping[str, Any]) -> Document:
    """Drop ``_id`` and make the document JSON-safe."""
    return {key: _normalize_value(value) for key, value in doc.items() if key != "_id"}


def _normalize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Mapping):
        return {key: _normalize_value(item) for key, item in value.items() if key != "_id"}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(item) for item in value]
    return value
