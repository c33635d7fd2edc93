"""S3-compatible object storage for uploaded PDFs using MinIO.

Production-grade implementation with:
- Lazy client initialization
- Bucket auto-creation
- Presigned URL generation for secure downloads
- Retry with exponential backoff on transient S3 errors
- Result objects instead of exceptions, so callers can degrade gracefully

Based on MinIO Python SDK:
https://min.io/docs/minio/linux/developers/python/API.html
"""

import io
import logging
from datetime import timedelta
from typing import Any

from minio import Minio
from minio.error import S3Error
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invoice_review.shared.config import Settings

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def object_name_for(file_id: str) -> str:
    """Object key under which an uploaded PDF is stored."""
    return f"{file_id}.pdf"


class StorageResult(BaseModel):
    """Result of storage operation.

    Attributes:
        success: Whether operation succeeded
        object_name: Full object path in storage
        bucket: Bucket name
        error: Error message if operation failed
        etag: Object ETag (hash) if available
        size: Object size in bytes if available
        data: Object content for downloads
    """

    success: bool
    object_name: str | None = None
    bucket: str | None = None
    error: str | None = None
    etag: str | None = None
    size: int | None = None
    data: bytes | None = None


class PresignedUrlResult(BaseModel):
    """Result of presigned URL generation.

    Attributes:
        success: Whether operation succeeded
        url: Presigned URL for object access
        expires_in_seconds: URL expiration time
        error: Error message if operation failed
    """

    success: bool
    url: str | None = None
    expires_in_seconds: int | None = None
    error: str | None = None


_retry_s3 = retry(
    retry=retry_if_exception_type(S3Error),
    stop=stop_after_attempt(3),
    wait=wait_exponential_jitter(initial=1, max=10),
    reraise=True,
)


class StorageService:
    """Blob storage for uploaded invoice PDFs."""

    def __init__(self, settings: Settings) -> None:
        """Initialize storage service.

        Args:
            settings: Application settings with storage configuration
        """
        self.settings = settings
        self._client: Minio | None = None
        self._bucket_exists_cache: set[str] = set()

    def _get_client(self) -> Minio:
        """Get or create MinIO client (lazy initialization).

        Returns:
            Configured Minio client instance

        Raises:
            ValueError: If storage credentials are not configured
        """
        if self._client is None:
            if not self.settings.storage_access_key:
                raise ValueError(
                    "Storage access key not configured. "
                    "Set APP_STORAGE_ACCESS_KEY environment variable."
                )
            if not self.settings.storage_secret_key:
                raise ValueError(
                    "Storage secret key not configured. "
                    "Set APP_STORAGE_SECRET_KEY environment variable."
                )

            self._client = Minio(
                endpoint=self.settings.storage_endpoint,
                access_key=self.settings.storage_access_key,
                secret_key=self.settings.storage_secret_key,
                secure=self.settings.storage_secure,
            )
            logger.info(f"MinIO client initialized for endpoint: {self.settings.storage_endpoint}")

        return self._client

    def is_available(self) -> bool:
        """Check if storage service is enabled and configured.

        Returns:
            True if storage is enabled and credentials are set
        """
        if not self.settings.storage_enabled:
            return False

        return bool(self.settings.storage_access_key and self.settings.storage_secret_key)

    def health_check(self) -> bool:
        """Check if storage backend is reachable.

        Returns:
            True if MinIO server responds to list_buckets
        """
        if not self.is_available():
            return False

        try:
            self._get_client().list_buckets()
            return True
        except Exception as e:
            logger.warning(f"Storage health check failed: {e}")
            return False

    def _ensure_bucket(self, bucket: str) -> None:
        if bucket in self._bucket_exists_cache:
            return

        client = self._get_client()
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info(f"Created bucket: {bucket}")

        self._bucket_exists_cache.add(bucket)

    @_retry_s3
    def _put_object(self, bucket: str, object_name: str, data: bytes, content_type: str) -> Any:
        self._ensure_bucket(bucket)
        return self._get_client().put_object(
            bucket_name=bucket,
            object_name=object_name,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    @_retry_s3
    def _get_object(self, bucket: str, object_name: str) -> bytes:
        response = self._get_client().get_object(bucket_name=bucket, object_name=object_name)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def upload_bytes(
        self,
        data: bytes,
        object_name: str,
        content_type: str = PDF_CONTENT_TYPE,
        bucket: str | None = None,
    ) -> StorageResult:
        """Upload bytes to storage.

        Args:
            data: Bytes to upload
            object_name: Target object name in storage
            content_type: MIME type
            bucket: Target bucket (defaults to settings.storage_bucket)

        Returns:
            StorageResult with upload details
        """
        bucket = bucket or self.settings.storage_bucket

        try:
            result = self._put_object(bucket, object_name, data, content_type)
        except S3Error as e:
            logger.error(f"S3 error uploading {object_name}: {e}")
            return StorageResult(
                success=False,
                object_name=object_name,
                bucket=bucket,
                error=f"S3 error: {e.code} - {e.message}",
            )
        except Exception as e:
            logger.error(f"Error uploading {object_name}: {e}")
            return StorageResult(
                success=False,
                object_name=object_name,
                bucket=bucket,
                error=str(e),
            )

        logger.info(f"Uploaded {object_name} to {bucket} ({len(data)} bytes)")
        return StorageResult(
            success=True,
            object_name=object_name,
            bucket=bucket,
            etag=result.etag,
            size=len(data),
        )

    def download_bytes(self, object_name: str, bucket: str | None = None) -> StorageResult:
        """Download an object into memory.

        Args:
            object_name: Object name in storage
            bucket: Bucket name (defaults to settings.storage_bucket)

        Returns:
            StorageResult with ``data`` set on success
        """
        bucket = bucket or self.settings.storage_bucket

        try:
            data = self._get_object(bucket, object_name)
        except S3Error as e:
            logger.error(f"S3 error downloading {object_name}: {e}")
            return StorageResult(
                success=False,
                object_name=object_name,
                bucket=bucket,
                error=f"S3 error: {e.code} - {e.message}",
            )
        except Exception as e:
            logger.error(f"Error downloading {object_name}: {e}")
            return StorageResult(
                success=False,
                object_name=object_name,
                bucket=bucket,
                error=str(e),
            )

        return StorageResult(
            success=True,
            object_name=object_name,
            bucket=bucket,
            size=len(data),
            data=data,
        )

    def get_presigned_url(
        self,
        object_name: str,
        bucket: str | None = None,
        expires_seconds: int | None = None,
    ) -> PresignedUrlResult:
        """Generate presigned URL for secure object download.

        Args:
            object_name: Object name in storage
            bucket: Bucket name (defaults to settings.storage_bucket)
            expires_seconds: URL lifetime (defaults to settings.storage_url_expiry_seconds)

        Returns:
            PresignedUrlResult with URL or error
        """
        bucket = bucket or self.settings.storage_bucket
        expires_seconds = expires_seconds or self.settings.storage_url_expiry_seconds

        try:
            url = self._get_client().presigned_get_object(
                bucket_name=bucket,
                object_name=object_name,
                expires=timedelta(seconds=expires_seconds),
            )
        except S3Error as e:
            logger.error(f"S3 error generating presigned URL for {object_name}: {e}")
            return PresignedUrlResult(
                success=False,
                error=f"S3 error: {e.code} - {e.message}",
            )
        except Exception as e:
            logger.error(f"Error generating presigned URL for {object_name}: {e}")
            return PresignedUrlResult(
                success=False,
                error=str(e),
            )

        return PresignedUrlResult(
            success=True,
            url=url,
            expires_in_seconds=expires_seconds,
        )

    def delete_object(self, object_name: str, bucket: str | None = None) -> StorageResult:
        """Delete a stored PDF.

        Args:
            object_name: Object name to delete
            bucket: Bucket name (defaults to settings.storage_bucket)

        Returns:
            StorageResult indicating success or failure
        """
        bucket = bucket or self.settings.storage_bucket

        try:
            self._get_client().remove_object(bucket_name=bucket, object_name=object_name)
        except S3Error as e:
            logger.error(f"S3 error deleting {object_name}: {e}")
            return StorageResult(
                success=False,
                object_name=object_name,
                bucket=bucket,
                error=f"S3 error: {e.code} - {e.message}",
            )
        except Exception as e:
            logger.error(f"Error deleting {object_name}: {e}")
            return StorageResult(
                success=False,
                object_name=object_name,
                bucket=bucket,
                error=str(e),
            )

        logger.info(f"Deleted {object_name} from {bucket}")
        return StorageResult(success=True, object_name=object_name, bucket=bucket)

    def object_exists(self, object_name: str, bucket: str | None = None) -> bool:
        """Check whether a PDF is stored under ``object_name``.

        Unreachable storage counts as missing.
        """
        bucket = bucket or self.settings.storage_bucket

        try:
            self._get_client().stat_object(bucket_name=bucket, object_name=object_name)
        except S3Error as e:
            if e.code not in ("NoSuchKey", "NoSuchBucket"):
                logger.warning(f"S3 error checking {object_name}: {e}")
            return False
        except Exception as e:
            logger.warning(f"Error checking {object_name}: {e}")
            return False

        return True
