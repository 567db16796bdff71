"""
Summaries over historical price records.
"""

from typing import Any, Dict, Mapping, Optional, Sequence


def _discount_price(record: Mapping[str, Any]) -> int:
    return (record.get("price") or {}).get("discountPrice") or 0


def price_range(records: Sequence[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Current, highest and lowest discounted price of a history slice.

    ``records`` must be ordered newest first; the first one is the current
    price. A record without a discount price counts as 0. Returns None for
    an empty slice.
    """
    if not records:
        return None
    discounted = [_discount_price(record) for record in records]
    return {
        "currentPrice": dict(records[0]),
        "maxPrice": max(discounted),
        "minPrice": min(discounted),
    }
