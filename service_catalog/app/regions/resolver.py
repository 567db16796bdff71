"""
Country -> pricing region resolution.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from shared.errors import NotFoundError, RegionNotFound

from .table import REGIONS, Region

DEFAULT_COUNTRY = "US"


@dataclass(frozen=True)
class ResolvedRegion:
    """Outcome of a successful resolution."""

    region: str
    currency: str
    description: str
    country: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "region": self.region,
            "currency": self.currency,
            "description": self.description,
            "country": self.country,
        }


class RegionResolver:
    """Resolve client countries against an immutable region table.

    Lookups are case-sensitive: codes must already be uppercase ISO-3166
    alpha-2, as stored in the table. The fallback chain is explicit country,
    then cookie country, then ``default_country``. An unmapped candidate
    raises ``RegionNotFound``; it never falls back silently.
    """

    def __init__(self, regions: Iterable[Region] = REGIONS, default_country: str = DEFAULT_COUNTRY):
        self._regions: Tuple[Region, ...] = tuple(regions)
        self._by_id: Dict[str, Region] = {}
        self.default_country = default_country

        seen: Dict[str, str] = {}
        for region in self._regions:
            if region.id in self._by_id:
                raise ValueError(f"Duplicate region id {region.id}")
            self._by_id[region.id] = region
            for country in region.countries:
                if country in seen:
                    raise ValueError(
                        f"Country {country} mapped to both {seen[country]} and {region.id}"
                    )
                seen[country] = region.id

    def regions(self) -> Tuple[Region, ...]:
        """All regions in table order."""
        return self._regions

    def candidate_country(
        self,
        explicit_country: Optional[str] = None,
        cookie_country: Optional[str] = None,
    ) -> str:
        if explicit_country:
            return explicit_country
        if cookie_country:
            return cookie_country
        return self.default_country

    def resolve(
        self,
        explicit_country: Optional[str] = None,
        cookie_country: Optional[str] = None,
    ) -> ResolvedRegion:
        """Resolve the request's country to its pricing region."""
        country = self.candidate_country(explicit_country, cookie_country)

        for region in self._regions:
            if country in region.countries:
                return ResolvedRegion(
                    region=region.id,
                    currency=region.currency_code,
                    description=region.description,
                    country=country,
                )

        raise RegionNotFound(country)

    def get_region(self, region_id: str) -> Region:
        """Look up a region by its identifier."""
        region = self._by_id.get(region_id)
        if region is None:
            raise NotFoundError("Region not found", {"region": region_id})
        return region
