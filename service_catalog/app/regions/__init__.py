"""
Pricing regions: the static region table and the country resolver.
"""

from .resolver import DEFAULT_COUNTRY, RegionResolver, ResolvedRegion
from .table import REGIONS, Region

__all__ = ["DEFAULT_COUNTRY", "REGIONS", "Region", "RegionResolver", "ResolvedRegion"]
