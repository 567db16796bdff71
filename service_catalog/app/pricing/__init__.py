"""
Regional price resolution helpers.
"""

from .merge import group_prices_by_region, latest_prices_by_offer, merge_prices, parse_timestamp
from .stats import price_range

__all__ = ["group_prices_by_region", "latest_prices_by_offer", "merge_prices", "parse_timestamp", "price_range"]
