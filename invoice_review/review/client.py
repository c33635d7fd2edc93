"""HTTP client for the dashboard API.

Unwraps the ``{success, data, error, message}`` envelope and maps error
statuses back onto the shared error taxonomy, so review code handles the
same exceptions the server raised.
"""

import logging
from typing import Any

import httpx

from invoice_review.models.invoice import InvoiceDocument
from invoice_review.persistence.service import InvoiceListing
from invoice_review.shared.config import Settings, get_settings
from invoice_review.shared.errors import (
    ConflictError,
    DashboardError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from invoice_review.upload.service import UploadResult

logger = logging.getLogger(__name__)

_STATUS_ERRORS: dict[int, type[DashboardError]] = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
}


class DashboardClient:
    """Thin typed wrapper over the /api routes."""

    def __init__(
        self,
        settings: Settings | None = None,
        http: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize client.

        Args:
            settings: Settings providing api_base_url (ignored when ``http`` is given)
            http: Pre-built httpx client (e.g. FastAPI TestClient)
            timeout: Request timeout in seconds for the default client
        """
        if http is None:
            settings = settings or get_settings()
            http = httpx.Client(base_url=settings.api_base_url, timeout=timeout)
        self._http = http

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._http.request(method, f"/api{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise UpstreamError("Dashboard API unreachable") from e

        try:
            body: dict[str, Any] = response.json()
        except ValueError:
            body = {}

        if response.is_success and body.get("success", False):
            return body

        message = body.get("error") or response.reason_phrase or "Request failed"
        raise _STATUS_ERRORS.get(response.status_code, UpstreamError)(message)

    def upload_pdf(
        self, content: bytes, filename: str, content_type: str = "application/pdf"
    ) -> UploadResult:
        body = self._request("POST", "/upload", files={"file": (filename, content, content_type)})
        return UploadResult.model_validate(body["data"])

    def extract(self, file_id: str, model: str = "gemini") -> InvoiceDocument:
        body = self._request("POST", "/extract", json={"fileId": file_id, "model": model})
        return InvoiceDocument.model_validate(body["data"])

    def list_invoices(
        self, query: str | None = None, page: int = 1, limit: int = 10
    ) -> InvoiceListing:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if query:
            params["q"] = query
        body = self._request("GET", "/invoices", params=params)
        return InvoiceListing.model_validate(body["data"])

    def get_invoice(self, file_id: str) -> InvoiceDocument:
        body = self._request("GET", f"/invoices/{file_id}")
        return InvoiceDocument.model_validate(body["data"])

    def create_invoice(self, document: InvoiceDocument) -> InvoiceDocument:
        body = self._request("POST", "/invoices", json=document.to_record())
        return InvoiceDocument.model_validate(body["data"])

    def update_invoice(
        self, file_id: str, changes: InvoiceDocument | dict[str, Any]
    ) -> InvoiceDocument:
        payload = changes.to_record() if isinstance(changes, InvoiceDocument) else changes
        body = self._request("PUT", f"/invoices/{file_id}", json=payload)
        return InvoiceDocument.model_validate(body["data"])

    def delete_invoice(self, file_id: str) -> None:
        self._request("DELETE", f"/invoices/{file_id}")

    def file_url(self, file_id: str) -> str:
        body = self._request("GET", f"/files/{file_id}")
        return str(body["data"]["fileUrl"])

    def close(self) -> None:
        self._http.close()
