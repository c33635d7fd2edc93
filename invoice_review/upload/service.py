"""PDF upload handling.

Validates the payload before touching storage, assigns the fileId that keys
the invoice through extraction and persistence, and stores the PDF in blob
storage when it is configured. A storage failure does not fail the upload:
the caller still gets a fileId, just no retrievable URL.
"""

import logging
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from invoice_review.shared.config import Settings
from invoice_review.shared.errors import ValidationError
from invoice_review.storage.service import PDF_CONTENT_TYPE, StorageService, object_name_for

logger = logging.getLogger(__name__)


class UploadResult(BaseModel):
    """Accepted upload.

    Attributes:
        file_id: Identifier assigned to the PDF
        file_name: Original file name
        file_url: Presigned URL if the PDF was stored and could be signed
        stored: Whether the PDF reached blob storage (not serialized)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    file_id: str
    file_name: str
    file_url: str | None = None
    stored: bool = Field(False, exclude=True)

    @property
    def persisted(self) -> bool:
        return self.stored


def new_file_id() -> str:
    """Generate a random 128-bit identifier (UUID4 string)."""
    return str(uuid.uuid4())


class UploadService:
    """Accepts PDF uploads and forwards them to blob storage."""

    def __init__(self, settings: Settings, storage: StorageService) -> None:
        """Initialize upload service.

        Args:
            settings: Application settings (size limit, placeholder URL base)
            storage: Blob storage used to persist PDFs
        """
        self.settings = settings
        self.storage = storage

    def validate(self, filename: str | None, content_type: str | None, size: int) -> None:
        """Check an upload before any storage attempt.

        Raises:
            ValidationError: If the file is missing, not a PDF, empty or too large
        """
        if not filename:
            raise ValidationError("No file uploaded")

        if content_type != PDF_CONTENT_TYPE:
            raise ValidationError(
                f"Invalid file type: {content_type}. Only PDF files are allowed."
            )

        if size == 0:
            raise ValidationError("Empty file")

        if size > self.settings.upload_max_bytes:
            limit_mb = self.settings.upload_max_bytes // (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {limit_mb}MB.")

    def accept(
        self, content: bytes, filename: str | None, content_type: str | None
    ) -> UploadResult:
        """Validate, identify and (if possible) store an uploaded PDF.

        Args:
            content: Raw file bytes
            filename: Original file name
            content_type: MIME type reported by the client

        Returns:
            UploadResult with the new fileId and, when stored, a file URL

        Raises:
            ValidationError: If the upload is rejected
        """
        self.validate(filename, content_type, len(content))

        file_id = new_file_id()
        result = UploadResult(file_id=file_id, file_name=filename)

        if not self.storage.is_available():
            logger.warning(f"Blob storage not configured, upload {file_id} not persisted")
            return result

        object_name = object_name_for(file_id)
        stored = self.storage.upload_bytes(data=content, object_name=object_name)
        if not stored.success:
            logger.warning(f"Blob storage upload failed for {file_id}: {stored.error}")
            return result

        result.stored = True
        url = self.storage.get_presigned_url(object_name)
        if url.success:
            result.file_url = url.url
        else:
            logger.warning(f"Could not sign URL for {file_id}: {url.error}")

        return result

    def file_url(self, file_id: str) -> str:
        """URL from which the PDF for ``file_id`` can be fetched.

        Returns a presigned URL when blob storage is available, otherwise the
        configured placeholder location.
        """
        if self.storage.is_available():
            url = self.storage.get_presigned_url(object_name_for(file_id))
            if url.success and url.url:
                return url.url
            logger.warning(f"Could not sign URL for {file_id}: {url.error}")

        return f"{self.settings.files_base_url.rstrip('/')}/{object_name_for(file_id)}"
