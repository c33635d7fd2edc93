"""Unit tests for StorageService (MinIO/S3-compatible storage).

Tests storage operations with mocked MinIO client.
"""

from unittest.mock import MagicMock, patch

import pytest
from minio.error import S3Error
from tenacity import wait_none

from invoice_review.shared.config import Settings
from invoice_review.storage.service import StorageService, object_name_for


def _s3_error(code: str = "NoSuchKey", message: str = "Object not found") -> S3Error:
    return S3Error(
        code=code,
        message=message,
        resource="/test-invoices/file-1.pdf",
        request_id="12345",
        host_id="host",
        response=MagicMock(status=404, data=b""),
    )


@pytest.fixture
def storage_settings() -> Settings:
    """Create test settings with storage enabled."""
    return Settings(
        storage_enabled=True,
        storage_endpoint="localhost:9000",
        storage_access_key="test-access-key",
        storage_secret_key="test-secret-key",
        storage_bucket="test-invoices",
        storage_secure=False,
        storage_url_expiry_seconds=900,
    )


@pytest.fixture
def disabled_storage_settings() -> Settings:
    """Create test settings with storage disabled."""
    return Settings(storage_enabled=False)


@pytest.fixture
def mock_minio_client() -> MagicMock:
    """Create mock MinIO client."""
    mock = MagicMock()
    mock.bucket_exists.return_value = True
    mock.list_buckets.return_value = []
    return mock


@pytest.fixture
def no_retry_wait():
    """Remove backoff sleeps from the retried S3 calls."""
    with (
        patch.object(StorageService._put_object.retry, "wait", wait_none()),
        patch.object(StorageService._get_object.retry, "wait", wait_none()),
    ):
        yield


def test_object_name_for() -> None:
    """Should key PDFs by fileId."""
    assert object_name_for("abc") == "abc.pdf"


class TestStorageServiceAvailability:
    """Test storage service availability checks."""

    def test_is_available_when_enabled_and_configured(self, storage_settings: Settings) -> None:
        """Should return True when storage is enabled and credentials are set."""
        service = StorageService(storage_settings)
        assert service.is_available() is True

    def test_is_not_available_when_disabled(self, disabled_storage_settings: Settings) -> None:
        """Should return False when storage is disabled."""
        service = StorageService(disabled_storage_settings)
        assert service.is_available() is False

    def test_is_not_available_without_access_key(self) -> None:
        """Should return False when access key is missing."""
        settings = Settings(
            storage_enabled=True,
            storage_access_key="",
            storage_secret_key="secret",
        )
        service = StorageService(settings)
        assert service.is_available() is False

    def test_get_client_without_credentials(self) -> None:
        """Should refuse to build a client without credentials."""
        service = StorageService(Settings(storage_enabled=True, storage_access_key=""))

        with pytest.raises(ValueError, match="APP_STORAGE_ACCESS_KEY"):
            service._get_client()


class TestStorageServiceHealthCheck:
    """Test storage service health checks."""

    def test_health_check_success(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should return True when MinIO is reachable."""
        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            assert service.health_check() is True

        mock_minio_client.list_buckets.assert_called_once()

    def test_health_check_failure(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should return False when MinIO is not reachable."""
        mock_minio_client.list_buckets.side_effect = Exception("Connection refused")
        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            assert service.health_check() is False

    def test_health_check_when_disabled(self, disabled_storage_settings: Settings) -> None:
        """Should return False when storage is disabled."""
        service = StorageService(disabled_storage_settings)
        assert service.health_check() is False


class TestStorageServiceUpload:
    """Test storage upload operations."""

    def test_upload_bytes_success(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should upload bytes as a PDF object."""
        mock_minio_client.put_object.return_value = MagicMock(etag="abc123")

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.upload_bytes(data=b"%PDF-1.4", object_name="file-1.pdf")

        assert result.success is True
        assert result.object_name == "file-1.pdf"
        assert result.bucket == "test-invoices"
        assert result.etag == "abc123"
        assert result.size == 8
        assert mock_minio_client.put_object.call_args.kwargs["content_type"] == "application/pdf"

    def test_upload_bytes_creates_bucket_if_missing(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should create bucket if it doesn't exist, once."""
        mock_minio_client.bucket_exists.return_value = False
        mock_minio_client.put_object.return_value = MagicMock(etag="abc123")

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            service.upload_bytes(data=b"one", object_name="a.pdf")
            service.upload_bytes(data=b"two", object_name="b.pdf")

        mock_minio_client.make_bucket.assert_called_once_with("test-invoices")
        mock_minio_client.bucket_exists.assert_called_once()

    def test_upload_bytes_s3_error_is_retried(
        self, storage_settings: Settings, mock_minio_client: MagicMock, no_retry_wait
    ) -> None:
        """Should retry S3 errors and succeed when a later attempt works."""
        mock_minio_client.put_object.side_effect = [
            _s3_error("SlowDown", "Please reduce your request rate"),
            MagicMock(etag="retried"),
        ]

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.upload_bytes(data=b"data", object_name="file-1.pdf")

        assert result.success is True
        assert result.etag == "retried"
        assert mock_minio_client.put_object.call_count == 2

    def test_upload_bytes_s3_error(
        self, storage_settings: Settings, mock_minio_client: MagicMock, no_retry_wait
    ) -> None:
        """Should give up after three attempts and report the S3 error."""
        mock_minio_client.put_object.side_effect = _s3_error("NoSuchBucket", "Bucket missing")

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.upload_bytes(data=b"data", object_name="file-1.pdf")

        assert result.success is False
        assert "S3 error: NoSuchBucket" in str(result.error)
        assert mock_minio_client.put_object.call_count == 3

    def test_upload_bytes_connection_error(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should report non-S3 failures without retrying."""
        mock_minio_client.put_object.side_effect = ConnectionError("Connection refused")

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.upload_bytes(data=b"data", object_name="file-1.pdf")

        assert result.success is False
        assert "Connection refused" in str(result.error)
        mock_minio_client.put_object.assert_called_once()


class TestStorageServiceDownload:
    """Test storage download operations."""

    def test_download_bytes_success(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should read the object and release the connection."""
        response = MagicMock()
        response.read.return_value = b"%PDF-1.4 content"
        mock_minio_client.get_object.return_value = response

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.download_bytes("file-1.pdf")

        assert result.success is True
        assert result.data == b"%PDF-1.4 content"
        assert result.size == 16
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_download_bytes_missing_object(
        self, storage_settings: Settings, mock_minio_client: MagicMock, no_retry_wait
    ) -> None:
        """Should report a missing object as a failed result."""
        mock_minio_client.get_object.side_effect = _s3_error()

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.download_bytes("file-1.pdf")

        assert result.success is False
        assert result.data is None
        assert "NoSuchKey" in str(result.error)


class TestStorageServicePresignedUrl:
    """Test presigned URL generation."""

    def test_get_presigned_url_success(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should generate presigned URL successfully."""
        expected_url = "https://minio:9000/test-invoices/file-1.pdf?signature=abc"
        mock_minio_client.presigned_get_object.return_value = expected_url

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.get_presigned_url(object_name="file-1.pdf", expires_seconds=7200)

        assert result.success is True
        assert result.url == expected_url
        assert result.expires_in_seconds == 7200

    def test_get_presigned_url_default_expiry(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should use the configured expiry when none is given."""
        mock_minio_client.presigned_get_object.return_value = "https://signed"

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.get_presigned_url(object_name="file-1.pdf")

        assert result.expires_in_seconds == 900

    def test_get_presigned_url_s3_error(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should handle S3 errors gracefully."""
        mock_minio_client.presigned_get_object.side_effect = _s3_error()

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.get_presigned_url(object_name="file-1.pdf")

        assert result.success is False
        assert "S3 error" in str(result.error)


class TestStorageServiceDelete:
    """Test storage delete operations."""

    def test_delete_object_success(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should delete the object from the configured bucket."""
        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.delete_object(object_name="file-1.pdf")

        assert result.success is True
        mock_minio_client.remove_object.assert_called_once_with(
            bucket_name="test-invoices", object_name="file-1.pdf"
        )

    def test_delete_object_s3_error(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should handle S3 errors gracefully."""
        mock_minio_client.remove_object.side_effect = _s3_error("AccessDenied", "Access Denied")

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            result = service.delete_object(object_name="file-1.pdf")

        assert result.success is False
        assert "AccessDenied" in str(result.error)


class TestStorageServiceObjectExists:
    """Test object existence checks."""

    def test_object_exists_true(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should return True when object exists."""
        mock_minio_client.stat_object.return_value = MagicMock()

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            assert service.object_exists("file-1.pdf") is True

        mock_minio_client.stat_object.assert_called_once_with(
            bucket_name="test-invoices", object_name="file-1.pdf"
        )

    def test_object_exists_false(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should return False when object doesn't exist."""
        mock_minio_client.stat_object.side_effect = _s3_error()

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            assert service.object_exists("file-1.pdf") is False

    def test_object_exists_unreachable(
        self, storage_settings: Settings, mock_minio_client: MagicMock
    ) -> None:
        """Should treat an unreachable server as missing."""
        mock_minio_client.stat_object.side_effect = ConnectionError("Connection refused")

        service = StorageService(storage_settings)

        with patch.object(service, "_get_client", return_value=mock_minio_client):
            assert service.object_exists("file-1.pdf") is False
