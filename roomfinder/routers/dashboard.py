"""
Owner dashboard endpoints: listing overview, availability toggle and deletion.
"""

from fastapi import APIRouter, Depends, Query, status

from roomfinder.schemas.listing import DashboardResponse
from roomfinder.services.dashboard import OwnerDashboard
from roomfinder.services.error_handler import error_responses
from roomfinder.utils.dependencies import get_owner_dashboard

router = APIRouter(prefix="/dashboard", tags=["Owner Dashboard"], responses=error_responses(401, 403, 404, 422, 502))


@router.get(
    "",
    response_model=DashboardResponse,
    status_code=status.HTTP_200_OK,
    summary="Owner dashboard",
    description="All of the owner's listings, newest first, with total/active/inactive counts"
)
async def get_dashboard(
    dashboard: OwnerDashboard = Depends(get_owner_dashboard)
) -> DashboardResponse:
    listings, stats = await dashboard.list()
    return DashboardResponse(listings=listings, stats=stats)


@router.post(
    "/listings/{listing_id}/toggle",
    response_model=DashboardResponse,
    summary="Toggle availability",
    description="Flip a listing between available and unavailable"
)
async def toggle_listing(
    listing_id: str,
    dashboard: OwnerDashboard = Depends(get_owner_dashboard)
) -> DashboardResponse:
    available, listings, stats = await dashboard.toggle_availability(listing_id)
    return DashboardResponse(
        listings=listings,
        stats=stats,
        message=f"Listing {'activated' if available else 'deactivated'}"
    )


@router.delete(
    "/listings/{listing_id}",
    response_model=DashboardResponse,
    summary="Delete listing",
    description="Hard-delete a listing. Requires confirm=true; there is no undo"
)
async def delete_listing(
    listing_id: str,
    confirm: bool = Query(False, description="Confirm the deletion"),
    dashboard: OwnerDashboard = Depends(get_owner_dashboard)
) -> DashboardResponse:
    """
    Raises:
        ValidationError: If confirm is not set
        ListingNotFound: If the listing is not owned by the caller
    """
    await dashboard.remove(listing_id, confirmed=confirm)
    listings, stats = await dashboard.list()
    return DashboardResponse(listings=listings, stats=stats, message="Listing deleted successfully")
