"""
Repository layer for backend data access.
Wraps the backend client's relation queries and object storage with consistent error handling.
"""

from roomfinder.repositories.base import BaseRepository
from roomfinder.repositories.listing import ListingRepository
from roomfinder.repositories.message import MessageRepository
from roomfinder.repositories.storage import ImageStorage
from roomfinder.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "ListingRepository",
    "MessageRepository",
    "ImageStorage",
    "UserRepository"
]
