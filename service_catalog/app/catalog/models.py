"""
Request models for catalog queries.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

SortField = Literal["lastModifiedDate", "releaseDate", "effectiveDate", "creationDate", "title"]


class SearchQuery(BaseModel):
    """Offer search body. ``page`` and ``limit`` are not part of the filter digest."""

    title: Optional[str] = None
    offerType: Optional[str] = None
    tags: Optional[List[str]] = None
    sortBy: SortField = "lastModifiedDate"
    sortDir: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    def filters(self) -> dict:
        return self.model_dump(exclude={"page", "limit"}, exclude_none=True)
