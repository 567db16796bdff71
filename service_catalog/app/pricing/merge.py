"""
Join offers to their regional price records.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def latest_prices_by_offer(prices: Iterable[Mapping[str, Any]], region: str) -> Dict[str, Dict[str, Any]]:
    """Pick the most recently updated price per offer within one region.

    Ties on ``updatedAt`` keep the record seen first, so a source sorted by
    ``updatedAt`` descending yields its first match per offer.
    """
    lookup: Dict[str, Dict[str, Any]] = {}
    stamps: Dict[str, datetime] = {}

    for price in prices:
        if price.get("region") != region:
            continue
        offer_id = price.get("offerId")
        if not offer_id:
            continue

        updated_at = parse_timestamp(price.get("updatedAt"))
        if offer_id not in lookup or updated_at > stamps[offer_id]:
            lookup[offer_id] = dict(price)
            stamps[offer_id] = updated_at

    return lookup


def merge_prices(
    offers: Iterable[Mapping[str, Any]],
    prices: Iterable[Mapping[str, Any]],
    region: str,
) -> List[Dict[str, Any]]:
    """Attach ``price`` to every offer, in the original order.

    Offers without a price in ``region`` get an explicit ``None``; none are
    dropped.
    """
    lookup = latest_prices_by_offer(prices, region)
    return [{**offer, "price": lookup.get(offer.get("id"))} for offer in offers]


def group_prices_by_region(prices: Iterable[Mapping[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Bucket price records by region, keeping input order inside each bucket."""
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for price in prices:
        region = price.get("region")
        if not region:
            continue
        grouped.setdefault(region, []).append(dict(price))
    return grouped


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        text = value.replace("Z", "+00:00") if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return _EPOCH
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return _EPOCH

