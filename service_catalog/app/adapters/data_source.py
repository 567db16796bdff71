"""
Read-only catalog data source contract.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

Document = Dict[str, Any]


class CatalogDataSource(Protocol):
    """Queries the catalog layer issues against the document store.

    Implementations return JSON-safe documents and raise
    ``shared.errors.DataSourceError`` on failure.
    """

    async def list_offers(self, skip: int, limit: int) -> List[Document]:
        """Offers ordered by ``lastModifiedDate`` descending."""
        ...  # pragma: no cover

    async def count_offers(self) -> int:
        ...  # pragma: no cover

    async def get_offer(self, offer_id: str) -> Optional[Document]:
        ...  # pragma: no cover

    async def get_offers(
        self,
        offer_ids: Sequence[str],
        offer_types: Optional[Sequence[str]] = None,
    ) -> List[Document]:
        """Offers with the given ids, in no particular order.

        When ``offer_types`` is given only offers of those types are returned.
        """
        ...  # pragma: no cover

    async def find_prices(self, offer_ids: Sequence[str], region: str) -> List[Document]:
        """Price records for ``region``, newest ``updatedAt`` first."""
        ...  # pragma: no cover

    async def find_offer_prices(self, offer_id: str) -> List[Document]:
        """Current price records for one offer across every region."""
        ...  # pragma: no cover

    async def find_price_history(
        self,
        offer_id: str,
        regions: Sequence[str],
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Document]:
        """Historical price records within ``[since, until]``, newest first."""
        ...  # pragma: no cover

    async def upcoming_offers(self, skip: int, limit: int, now: datetime) -> List[Document]:
        ...  # pragma: no cover

    async def latest_released(self, limit: int, now: datetime) -> List[Document]:
        ...  # pragma: no cover

    async def find_discounted_prices(self, offer_ids: Sequence[str], region: str) -> List[Document]:
        """Current discounted price records in ``region``, newest first."""
        ...  # pragma: no cover

    async def lowest_discounted_price(self, offer_id: str, region: str) -> Optional[Document]:
        """Historical discounted record with the lowest ``discountPrice``."""
        ...  # pragma: no cover

    async def latest_discounted_price(self, offer_id: str, region: str) -> Optional[Document]:
        """Most recent historical discounted record."""
        ...  # pragma: no cover

    async def featured_positions(self, limit: int) -> List[Document]:
        """Featured ``{offerId, position}`` entries with ``position > 0``, ascending."""
        ...  # pragma: no cover

    async def get_mappings(self, offer_id: str) -> Optional[Document]:
        """Store page mappings for an offer."""
        ...  # pragma: no cover

    async def search_offers(
        self,
        filters: Mapping[str, Any],
        skip: int,
        limit: int,
    ) -> Tuple[List[Document], int]:
        """Matching offers for the page plus the total match count."""
        ...  # pragma: no cover

    async def autocomplete(self, term: str, limit: int) -> List[Document]:
        ...  # pragma: no cover

    async def ping(self) -> bool:
        ...  # pragma: no cover
