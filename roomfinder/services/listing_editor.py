"""
Listing editor service for creating and editing an owner's listings.
Handles image uploads to object storage and listing writes.
"""

from typing import List, Optional
import logging

from supabase import AsyncClient

from roomfinder.repositories.listing import ListingRepository
from roomfinder.repositories.storage import ImageStorage
from roomfinder.schemas.listing import ListingForm, ListingResponse
from roomfinder.schemas.user import UserProfile
from roomfinder.utils.exceptions import BackendError, ListingNotFound, ValidationError
from roomfinder.utils.file_utils import ImageDraft, PendingImage, build_storage_name

logger = logging.getLogger(__name__)

DASHBOARD_ROUTE = "/dashboard"


class ListingEditor:
    """
    Create/edit flow for listings owned by `owner`.

    Images are uploaded first, in selection order, and the listing row is
    written afterwards with the resulting public URLs.
    """

    def __init__(self, client: AsyncClient, owner: UserProfile):
        self.owner = owner
        self.listing_repo = ListingRepository(client)
        self.storage = ImageStorage(client)

    async def upload_images(self, files: List[PendingImage]) -> List[str]:
        """
        Store each file and resolve its public URL.

        Args:
            files: Pending images in the order they were selected

        Returns:
            Public URLs in upload order

        Raises:
            BackendError: On the first failed upload; earlier uploads stay in storage
        """
        urls: List[str] = []
        for image in files:
            name = build_storage_name(image.filename)
            await self.storage.upload(name, image.content, image.content_type)
            urls.append(await self.storage.public_url(name))
        logger.info(f"Uploaded {len(urls)} image(s) for owner {self.owner.id}")
        return urls

    def draft(
        self,
        existing: Optional[List[str]] = None,
        keep_images: Optional[List[str]] = None,
        images: Optional[List[PendingImage]] = None
    ) -> ImageDraft:
        """Image state before saving: kept existing URLs followed by pending files."""
        draft = ImageDraft(existing=list(existing or []))
        if keep_images is not None:
            draft.keep_only(keep_images)
        draft.add_files(images or [])
        return draft

    async def preview(
        self,
        images: List[PendingImage],
        listing_id: Optional[str] = None,
        keep_images: Optional[List[str]] = None
    ) -> ImageDraft:
        """
        Draft for the editor's image preview, without uploading anything.

        Raises:
            ListingNotFound: If `listing_id` is given and not owned by the current user
        """
        existing: List[str] = []
        if listing_id is not None:
            existing = (await self.load(listing_id)).images
        return self.draft(existing, keep_images, images)

    async def create(self, form: ListingForm, images: List[PendingImage]) -> ListingResponse:
        """
        Create a listing owned by the current user.

        Raises:
            ValidationError: If no image was selected
            BackendError: If an upload or the insert fails
        """
        if self.draft(images=images).is_empty:
            raise ValidationError("Please upload at least one image")

        image_urls = await self.upload_images(images)

        listing = await self.listing_repo.create_listing(
            self.owner.id,
            {**form.model_dump(), "images": image_urls},
        )
        if listing is None:
            raise BackendError("create listing", "insert returned no row")
        return listing

    async def load(self, listing_id: str) -> ListingResponse:
        """
        Load a listing for editing, scoped to the current owner.

        Raises:
            ListingNotFound: If the listing does not exist or belongs to someone else
        """
        listing = await self.listing_repo.get_owned(listing_id, self.owner.id)
        if listing is None:
            logger.warning(f"Owner {self.owner.id} cannot edit listing {listing_id}")
            raise ListingNotFound(listing_id)
        return listing

    async def update(
        self,
        listing_id: str,
        form: ListingForm,
        keep_images: Optional[List[str]] = None,
        new_images: Optional[List[PendingImage]] = None
    ) -> ListingResponse:
        """
        Write all fields of an owned listing back.

        Args:
            listing_id: Listing to edit
            form: Edited fields
            keep_images: Existing URLs to keep; None keeps them all
            new_images: Files to upload and append

        Returns:
            Updated listing; images are kept URLs followed by new uploads

        Raises:
            ListingNotFound: If the listing is not owned by the current user
        """
        listing = await self.load(listing_id)

        draft = self.draft(listing.images, keep_images, new_images)

        uploaded = await self.upload_images(draft.pending) if draft.pending else []
        images = draft.existing + uploaded

        updated = await self.listing_repo.update(
            listing_id,
            {**form.model_dump(), "images": images},
        )
        if updated is None:
            raise ListingNotFound(listing_id)

        logger.info(f"Listing {listing_id} updated by owner {self.owner.id}")
        return updated
