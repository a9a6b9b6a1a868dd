"""
Listing browser: backend search plus client-side rent and facility filtering.
"""

from typing import Iterable, List, Optional
import logging

from supabase import AsyncClient

from roomfinder.repositories.listing import ListingRepository
from roomfinder.schemas.listing import ListingFilters, ListingResponse

logger = logging.getLogger(__name__)


def matches_filters(listing: ListingResponse, filters: ListingFilters) -> bool:
    """True iff rent is inside the range and every requested facility is offered."""
    if listing.rent < filters.min_rent or listing.rent > filters.max_rent:
        return False
    if filters.facilities:
        offered = set(listing.facilities)
        if not all(facility in offered for facility in filters.facilities):
            return False
    return True


def apply_filters(listings: Iterable[ListingResponse], filters: ListingFilters) -> List[ListingResponse]:
    """
    Filter already-fetched listings without another backend round-trip.

    Args:
        listings: Listings as returned by `search`
        filters: Rent range and required facilities

    Returns:
        Matching listings in their original order
    """
    return [listing for listing in listings if matches_filters(listing, filters)]


class ListingBrowser:
    """Fetches available listings and narrows them locally."""

    def __init__(self, client: AsyncClient):
        self.listing_repo = ListingRepository(client)

    async def search(self, term: Optional[str] = None) -> List[ListingResponse]:
        """
        Available listings whose location contains `term` (case-insensitive), newest first.
        A blank term returns every available listing.
        """
        listings = await self.listing_repo.search_available(term)
        logger.debug(f"Browse search {term!r} returned {len(listings)} listing(s)")
        return listings

    async def browse(self, term: Optional[str], filters: ListingFilters) -> List[ListingResponse]:
        return apply_filters(await self.search(term), filters)
