"""
Listing repository for browse queries, owner-scoped lookups and listing writes.
"""

from typing import Any, Dict, List, Optional
import logging

from supabase import AsyncClient

from roomfinder.repositories.base import BaseRepository
from roomfinder.schemas.listing import ListingResponse

logger = logging.getLogger(__name__)

# Embedded owner contact on browse and detail reads
LISTING_WITH_OWNER = "*, owner:users!owner_id(name, phone, email)"


class ListingRepository(BaseRepository[ListingResponse]):
    """Data access for the `listings` relation."""

    table_name = "listings"

    def __init__(self, client: AsyncClient):
        super().__init__(ListingResponse, client)

    async def search_available(self, term: Optional[str] = None) -> List[ListingResponse]:
        """
        Available listings, optionally narrowed by a location substring.

        Args:
            term: Case-insensitive location fragment; blank means no constraint

        Returns:
            Listings newest first, with owner contact embedded
        """
        query = self.query().select(LISTING_WITH_OWNER).eq("available", True)

        term = (term or "").strip()
        if term:
            query = query.ilike("location", f"%{term}%")

        rows = await self.execute(
            query.order("created_at", desc=True),
            "search available listings"
        )
        return [self.parse(row) for row in rows]

    async def get_with_owner(self, listing_id: str) -> Optional[ListingResponse]:
        return await self.get_by_id(listing_id, columns=LISTING_WITH_OWNER)

    async def get_owned(self, listing_id: str, owner_id: str) -> Optional[ListingResponse]:
        """Listing by id, only if it belongs to `owner_id`."""
        return await self.first(
            self.query().select("*").eq("id", listing_id).eq("owner_id", owner_id),
            f"get owned listing {listing_id}"
        )

    async def list_by_owner(self, owner_id: str) -> List[ListingResponse]:
        """All of an owner's listings, newest first."""
        rows = await self.execute(
            self.query().select("*").eq("owner_id", owner_id).order("created_at", desc=True),
            f"list listings of owner {owner_id}"
        )
        return [self.parse(row) for row in rows]

    async def create_listing(self, owner_id: str, data: Dict[str, Any]) -> Optional[ListingResponse]:
        listing = await self.create({**data, "owner_id": owner_id})
        logger.info(f"Listing created for owner {owner_id}: {data.get('title')}")
        return listing

    async def set_availability(self, listing_id: str, available: bool) -> Optional[ListingResponse]:
        return await self.update(listing_id, {"available": available})
