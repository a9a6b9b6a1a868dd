"""
Owner dashboard service: an owner's listings with counts, deletion and availability toggling.
"""

from typing import List, Tuple
import logging

from supabase import AsyncClient

from roomfinder.repositories.listing import ListingRepository
from roomfinder.schemas.listing import DashboardStats, ListingResponse
from roomfinder.schemas.user import UserProfile
from roomfinder.utils.exceptions import ListingNotFound, ValidationError

logger = logging.getLogger(__name__)


def compute_stats(listings: List[ListingResponse]) -> DashboardStats:
    active = sum(1 for listing in listings if listing.available)
    return DashboardStats(total=len(listings), active=active, inactive=len(listings) - active)


class OwnerDashboard:
    """Listings belonging to `owner`."""

    def __init__(self, client: AsyncClient, owner: UserProfile):
        self.owner = owner
        self.listing_repo = ListingRepository(client)

    async def list(self) -> Tuple[List[ListingResponse], DashboardStats]:
        """All of the owner's listings, newest first, with total/active/inactive counts."""
        listings = await self.listing_repo.list_by_owner(self.owner.id)
        return listings, compute_stats(listings)

    async def _owned(self, listing_id: str) -> ListingResponse:
        listing = await self.listing_repo.get_owned(listing_id, self.owner.id)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing

    async def remove(self, listing_id: str, confirmed: bool = False) -> bool:
        """
        Hard-delete a listing. There is no undo.

        Args:
            listing_id: Listing to delete
            confirmed: Explicit confirmation from the user

        Returns:
            True if the backend deleted a row

        Raises:
            ValidationError: Without confirmation
            ListingNotFound: If the listing is not owned by the current user
        """
        if not confirmed:
            raise ValidationError("Are you sure you want to delete this listing? Confirmation required")

        await self._owned(listing_id)
        deleted = await self.listing_repo.delete(listing_id)
        logger.info(f"Listing {listing_id} deleted by owner {self.owner.id}")
        return deleted

    async def toggle_availability(self, listing_id: str) -> Tuple[bool, List[ListingResponse], DashboardStats]:
        """
        Flip availability, then re-fetch so the counts stay consistent.

        Returns:
            Tuple of (new availability, listings, stats)
        """
        listing = await self._owned(listing_id)
        available = not listing.available
        await self.listing_repo.set_availability(listing_id, available)
        logger.info(f"Listing {listing_id} {'activated' if available else 'deactivated'}")

        listings, stats = await self.list()
        return available, listings, stats
