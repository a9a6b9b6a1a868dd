"""
File upload utilities for listing images.
Validates image uploads, derives storage object names and keeps the editor's pending image draft.
"""

import base64
import io
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import List, Optional, Tuple
from PIL import Image
from fastapi import UploadFile

from roomfinder.config import get_settings
from roomfinder.utils.exceptions import (
    FileSizeExceededError,
    UnsupportedFileTypeError,
    ValidationError,
)

settings = get_settings()


class FileValidator:
    """Utility class for file validation operations."""

    # Supported image formats and their MIME types
    SUPPORTED_FORMATS = {
        'image/jpeg': ['.jpg', '.jpeg'],
        'image/png': ['.png'],
        'image/webp': ['.webp']
    }

    # Pillow format names per MIME type
    PIL_FORMATS = {
        'image/jpeg': ['jpeg'],
        'image/png': ['png'],
        'image/webp': ['webp']
    }

    # Image dimension constraints
    MIN_WIDTH = 100
    MIN_HEIGHT = 100
    MAX_WIDTH = 10000
    MAX_HEIGHT = 10000

    @classmethod
    def validate_file_extension(cls, filename: str) -> str:
        """
        Validate file extension.

        Args:
            filename: Name of the file

        Returns:
            Lowercase file extension

        Raises:
            ValidationError: If extension is not supported
        """
        if not filename:
            raise ValidationError("Filename is required")

        extension = Path(filename).suffix.lower()
        if not extension:
            raise ValidationError("File must have an extension")

        supported_extensions = [ext for exts in cls.SUPPORTED_FORMATS.values() for ext in exts]
        if extension not in supported_extensions:
            raise ValidationError(
                f"File extension '{extension}' not supported. "
                f"Supported extensions: {', '.join(supported_extensions)}"
            )

        return extension

    @classmethod
    def validate_mime_type(cls, mime_type: str) -> str:
        """
        Validate MIME type against the configured allow-list.

        Raises:
            UnsupportedFileTypeError: If MIME type is not supported
        """
        allowed = [t for t in settings.allowed_file_types if t in cls.SUPPORTED_FORMATS]
        if not mime_type or mime_type not in allowed:
            raise UnsupportedFileTypeError(mime_type or "unknown", allowed)
        return mime_type

    @classmethod
    def validate_file_size(cls, file_size: int, max_size: Optional[int] = None) -> int:
        """
        Validate file size.

        Raises:
            ValidationError: If the file is empty
            FileSizeExceededError: If file size exceeds limit
        """
        if file_size <= 0:
            raise ValidationError("File size must be greater than 0")

        max_allowed = max_size or settings.max_file_size
        if file_size > max_allowed:
            raise FileSizeExceededError(file_size, max_allowed)

        return file_size

    @classmethod
    def validate_image_dimensions(cls, width: int, height: int) -> Tuple[int, int]:
        """
        Validate image dimensions.

        Raises:
            ValidationError: If dimensions are out of range
        """
        if width < cls.MIN_WIDTH or height < cls.MIN_HEIGHT:
            raise ValidationError(
                f"Image is {width}x{height}px; minimum is {cls.MIN_WIDTH}x{cls.MIN_HEIGHT}px"
            )

        if width > cls.MAX_WIDTH or height > cls.MAX_HEIGHT:
            raise ValidationError(
                f"Image is {width}x{height}px; maximum is {cls.MAX_WIDTH}x{cls.MAX_HEIGHT}px"
            )

        return width, height

    @classmethod
    def validate_image(cls, filename: str, content_type: str, content: bytes) -> Tuple[int, int]:
        """
        Comprehensive validation of one image file.

        Args:
            filename: Original filename
            content_type: Declared MIME type
            content: Raw file bytes

        Returns:
            Tuple of (width, height)

        Raises:
            ValidationError: If any validation fails
        """
        extension = cls.validate_file_extension(filename)
        mime_type = cls.validate_mime_type(content_type)

        if extension not in cls.SUPPORTED_FORMATS[mime_type]:
            raise ValidationError(
                f"File extension '{extension}' doesn't match MIME type '{mime_type}'"
            )

        cls.validate_file_size(len(content))

        try:
            with Image.open(io.BytesIO(content)) as img:
                width, height = cls.validate_image_dimensions(*img.size)
                pil_format = img.format.lower() if img.format else ""
        except ValidationError:
            raise
        except Exception as e:
            raise ValidationError(f"Invalid image file: {str(e)}")

        if pil_format not in cls.PIL_FORMATS[mime_type]:
            raise ValidationError(
                f"Image format '{pil_format}' doesn't match MIME type '{mime_type}'"
            )

        return width, height


def build_storage_name(filename: str, now_ms: Optional[int] = None) -> str:
    """
    Object name for an upload: `<epoch-millis>-<original filename>`.

    Two uploads of the same filename within the same millisecond map to the
    same name.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    base = PurePath(filename.replace("\\", "/")).name
    return f"{now_ms}-{base}"


@dataclass
class PendingImage:
    """A selected image that has not been uploaded yet."""

    filename: str
    content_type: str
    content: bytes

    @property
    def preview_url(self) -> str:
        """Inline data URI for showing the image before it is uploaded."""
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


@dataclass
class ImageDraft:
    """
    Image state of the listing editor.

    `existing` holds URLs already stored on the listing, `pending` holds
    new files. Final order is kept existing URLs followed by pending files.
    """

    existing: List[str] = field(default_factory=list)
    pending: List[PendingImage] = field(default_factory=list)

    def add_files(self, files: List[PendingImage]) -> None:
        self.pending.extend(files)

    def keep_only(self, urls: List[str]) -> None:
        """Drop every existing URL not listed in `urls`, preserving order."""
        wanted = set(urls)
        self.existing = [url for url in self.existing if url in wanted]

    @property
    def previews(self) -> List[str]:
        return [image.preview_url for image in self.pending]

    @property
    def is_empty(self) -> bool:
        return not self.existing and not self.pending


async def read_upload(file: UploadFile) -> PendingImage:
    """
    Read and validate an uploaded file into a PendingImage.

    Raises:
        ValidationError: If the file is not an acceptable image
    """
    if not file.filename:
        raise ValidationError("Filename is required")

    await file.seek(0)
    content = await file.read()
    content_type = file.content_type or ""

    FileValidator.validate_image(file.filename, content_type, content)
    return PendingImage(filename=file.filename, content_type=content_type, content=content)
