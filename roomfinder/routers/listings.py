"""
Listing API endpoints: browse, detail, contact owner, and the owner's create/edit forms.
"""

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError as PydanticValidationError

from roomfinder.config import settings
from roomfinder.schemas.listing import (
    FACILITIES,
    ImageDraftResponse,
    ImagePreview,
    ListingEditResponse,
    ListingFilters,
    ListingForm,
    ListingListResponse,
    ListingResponse,
    NavigationResponse,
)
from roomfinder.schemas.user import UserProfile
from roomfinder.services.browse import ListingBrowser
from roomfinder.services.error_handler import error_responses
from roomfinder.services.listing_detail import ListingDetailService
from roomfinder.services.listing_editor import DASHBOARD_ROUTE, ListingEditor
from roomfinder.utils.dependencies import (
    get_listing_browser,
    get_listing_detail_service,
    get_listing_editor,
    get_optional_user,
)
from roomfinder.utils.exceptions import ValidationError
from roomfinder.utils.file_utils import read_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Listings"], responses=error_responses(400, 401, 403, 404, 422, 502))


def _validation_error(e: PydanticValidationError) -> ValidationError:
    field_errors = [
        {"field": ".".join(str(loc) for loc in error["loc"]) or "form", "message": error["msg"]}
        for error in e.errors()
    ]
    return ValidationError(field_errors[0]["message"], field_errors=field_errors)


def _build_form(
    title: str,
    rent: float,
    location: str,
    facilities: Optional[List[str]],
    available: bool
) -> ListingForm:
    try:
        return ListingForm(
            title=title,
            rent=rent,
            location=location,
            facilities=facilities or [],
            available=available
        )
    except PydanticValidationError as e:
        raise _validation_error(e)


@router.get(
    "/listings",
    response_model=ListingListResponse,
    status_code=status.HTTP_200_OK,
    summary="Browse available rooms",
    description="Available listings matching a location search, narrowed by rent range and facilities"
)
async def browse_listings(
    search: Optional[str] = Query(None, description="Location substring (case-insensitive)"),
    min_rent: float = Query(0, ge=0, description="Minimum rent (inclusive)"),
    max_rent: Optional[float] = Query(None, ge=0, description="Maximum rent (inclusive)"),
    facilities: List[str] = Query([], description="Facilities every result must offer"),
    available: bool = Query(True, description="Accepted for the filter form; results are always available rooms"),
    browser: ListingBrowser = Depends(get_listing_browser)
) -> ListingListResponse:
    """
    Browse available listings.

    Raises:
        ValidationError: If min_rent is greater than max_rent
    """
    try:
        filters = ListingFilters(
            min_rent=min_rent,
            max_rent=settings.default_max_rent if max_rent is None else max_rent,
            facilities=facilities,
            available=available
        )
    except PydanticValidationError as e:
        raise _validation_error(e)

    listings = await browser.browse(search, filters)
    return ListingListResponse(
        listings=listings,
        total=len(listings),
        search=(search or "").strip(),
        filters=filters
    )


@router.get(
    "/facilities",
    summary="Facility catalogue",
    description="Facility tags offered by the listing form and browse filters"
)
async def list_facilities():
    return {"facilities": FACILITIES}


@router.get(
    "/listings/{listing_id}",
    response_model=ListingResponse,
    summary="Listing detail",
    description="One listing with its owner's contact details"
)
async def get_listing(
    listing_id: str,
    detail_service: ListingDetailService = Depends(get_listing_detail_service)
) -> ListingResponse:
    """
    Raises:
        ListingNotFound: If the listing does not exist
    """
    return await detail_service.load(listing_id)


@router.post(
    "/listings/{listing_id}/contact",
    response_model=NavigationResponse,
    summary="Contact owner",
    description="Start a conversation with the owner; a greeting is sent only on first contact"
)
async def contact_owner(
    listing_id: str,
    current_user: Optional[UserProfile] = Depends(get_optional_user),
    detail_service: ListingDetailService = Depends(get_listing_detail_service)
) -> NavigationResponse:
    """
    Raises:
        AuthRequired: If nobody is signed in
        SelfContactRejected: If the caller owns the listing
        ListingNotFound: If the listing does not exist
    """
    listing = await detail_service.load(listing_id)
    created, route = await detail_service.contact_owner(listing, current_user)
    return NavigationResponse(
        message="Message sent to owner" if created else "Opening your conversation",
        redirect_to=route,
        listing_id=listing.id,
        created=created
    )


@router.post(
    "/listings",
    response_model=NavigationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create listing",
    description="Create a listing with at least one image (owners only)"
)
async def create_listing(
    title: str = Form(..., description="Room title"),
    rent: float = Form(..., description="Monthly rent"),
    location: str = Form(..., description="Location"),
    facilities: Optional[List[str]] = Form(None, description="Facility tags"),
    available: bool = Form(True, description="Open for rent"),
    files: Optional[List[UploadFile]] = File(None, description="Room images, in display order"),
    editor: ListingEditor = Depends(get_listing_editor)
) -> NavigationResponse:
    """
    Raises:
        ValidationError: If a field is invalid or no image was uploaded
        ForbiddenError: If the caller is not an owner
    """
    form = _build_form(title, rent, location, facilities, available)
    images = [await read_upload(file) for file in files or []]

    listing = await editor.create(form, images)
    return NavigationResponse(
        message="Listing created successfully!",
        redirect_to=DASHBOARD_ROUTE,
        listing_id=listing.id,
        created=True
    )


@router.post(
    "/listings/images/preview",
    response_model=ImageDraftResponse,
    summary="Preview listing images",
    description="Validate selected images and return inline previews in final order; nothing is uploaded"
)
async def preview_images(
    files: Optional[List[UploadFile]] = File(None, description="Selected images, in display order"),
    listing_id: Optional[str] = Form(None, description="Listing being edited, if any"),
    keep_images: Optional[List[str]] = Form(None, description="Existing image URLs to keep; omit to keep all"),
    editor: ListingEditor = Depends(get_listing_editor)
) -> ImageDraftResponse:
    """
    Raises:
        ValidationError: If a file is not an acceptable image
        ListingNotFound: If `listing_id` is not owned by the caller
    """
    images = [await read_upload(file) for file in files or []]
    draft = await editor.preview(images, listing_id, keep_images)
    return ImageDraftResponse(
        existing=draft.existing,
        pending=[
            ImagePreview(filename=image.filename, content_type=image.content_type, preview_url=url)
            for image, url in zip(draft.pending, draft.previews)
        ],
        empty=draft.is_empty
    )


@router.get(
    "/listings/{listing_id}/edit",
    response_model=ListingEditResponse,
    summary="Load listing for editing",
    description="Owned listing with the facility choices of the edit form"
)
async def edit_listing(
    listing_id: str,
    editor: ListingEditor = Depends(get_listing_editor)
) -> ListingEditResponse:
    listing = await editor.load(listing_id)
    return ListingEditResponse(listing=listing)


@router.put(
    "/listings/{listing_id}",
    response_model=NavigationResponse,
    summary="Update listing",
    description="Write back all fields; images are the kept URLs followed by new uploads"
)
async def update_listing(
    listing_id: str,
    title: str = Form(..., description="Room title"),
    rent: float = Form(..., description="Monthly rent"),
    location: str = Form(..., description="Location"),
    facilities: Optional[List[str]] = Form(None, description="Facility tags"),
    available: bool = Form(True, description="Open for rent"),
    keep_images: Optional[List[str]] = Form(None, description="Existing image URLs to keep; omit to keep all"),
    files: Optional[List[UploadFile]] = File(None, description="New images to append"),
    editor: ListingEditor = Depends(get_listing_editor)
) -> NavigationResponse:
    """
    Raises:
        ListingNotFound: If the listing is not owned by the caller
    """
    form = _build_form(title, rent, location, facilities, available)
    new_images = [await read_upload(file) for file in files or []]

    listing = await editor.update(listing_id, form, keep_images, new_images)
    return NavigationResponse(
        message="Listing updated successfully!",
        redirect_to=DASHBOARD_ROUTE,
        listing_id=listing.id,
        created=False
    )
