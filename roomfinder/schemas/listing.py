"""
Pydantic schemas for listing requests and responses.
Handles listing rows, owner contact embedding, browse filters, and dashboard stats.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime


FACILITIES: List[str] = [
    "WiFi",
    "Parking",
    "Kitchen",
    "Laundry",
    "AC",
    "Heater",
    "Furnished",
    "Pet Friendly",
    "Gym",
    "Swimming Pool",
]


def _clean_facilities(values: Optional[List[str]]) -> List[str]:
    """Strip tags and drop blanks and repeats, keeping first-seen order."""
    cleaned: List[str] = []
    for value in values or []:
        tag = (value or "").strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class OwnerContact(BaseModel):
    """Owner contact details embedded on a listing."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    phone: str = ""
    email: str = ""


class ListingBase(BaseModel):
    """Base listing schema with the editable fields."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Room title",
        examples=["Spacious Room in Kathmandu"]
    )

    rent: float = Field(
        ...,
        ge=0,
        description="Monthly rent (Rs)",
        examples=[15000]
    )

    location: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Free-text location",
        examples=["Thamel, Kathmandu"]
    )

    facilities: List[str] = Field(
        default_factory=list,
        description="Facility tags",
        examples=[["WiFi", "Parking"]]
    )

    available: bool = Field(True, description="Whether the room is open for rent")

    @field_validator("title", "location")
    @classmethod
    def validate_text(cls, v):
        """Validate and clean required text fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()

    @field_validator("facilities")
    @classmethod
    def validate_facilities(cls, v):
        return _clean_facilities(v)


class ListingForm(ListingBase):
    """Fields collected by the listing editor (images travel separately)."""


class ListingResponse(ListingBase):
    """Listing row as returned by the backend."""

    model_config = ConfigDict(extra="ignore")

    id: str
    owner_id: str
    images: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    owner: Optional[OwnerContact] = None

    @field_validator("facilities", "images", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class ListingFilters(BaseModel):
    """Client-side browse filter configuration."""

    min_rent: float = Field(0, ge=0, description="Minimum rent (inclusive)")
    max_rent: float = Field(50000, ge=0, description="Maximum rent (inclusive)")
    facilities: List[str] = Field(default_factory=list, description="Required facilities")
    available: bool = Field(
        True,
        description="Kept for the filter form; browse only ever fetches available listings"
    )

    @field_validator("facilities")
    @classmethod
    def validate_facilities(cls, v):
        return _clean_facilities(v)

    @model_validator(mode="after")
    def validate_rent_range(self):
        """Reject an inverted rent range."""
        if self.min_rent > self.max_rent:
            raise ValueError("min_rent cannot be greater than max_rent")
        return self


class ListingListResponse(BaseModel):
    """Browse results."""

    listings: List[ListingResponse]
    total: int
    search: str = ""
    filters: ListingFilters


class DashboardStats(BaseModel):
    """Aggregate counts for an owner's listings."""

    total: int = 0
    active: int = 0
    inactive: int = 0


class DashboardResponse(BaseModel):
    """Owner dashboard payload."""

    listings: List[ListingResponse]
    stats: DashboardStats
    message: str = ""


class ListingEditResponse(BaseModel):
    """Editor state for an owned listing."""

    listing: ListingResponse
    facility_choices: List[str] = Field(default_factory=lambda: list(FACILITIES))


class NavigationResponse(BaseModel):
    """Outcome of an action that moves the user to another view."""

    message: str = ""
    redirect_to: str
    listing_id: Optional[str] = None
    created: Optional[bool] = None


class ImagePreview(BaseModel):
    """A validated image that has not been uploaded yet."""

    filename: str
    content_type: str
    preview_url: str = Field(..., description="Inline data URI of the image")


class ImageDraftResponse(BaseModel):
    """Editor image state: kept URLs followed by pending uploads, in final order."""

    existing: List[str] = Field(default_factory=list)
    pending: List[ImagePreview] = Field(default_factory=list)
    empty: bool = True
