"""Invoice persistence service with runtime backend selection.

Every call asks the durable repository whether it is live and otherwise
serves from the in-memory fallback. A call uses exactly one backend for all
of its steps, so a process can drop to the fallback (and come back) between
requests without mixing stores inside one operation.

Boundary rules applied here, once, for both backends:
- create payloads are validated and stamped with createdAt/updatedAt
- update payloads lose fileId/createdAt and always get a fresh updatedAt
- totals are stored as sent (never recomputed from line items)
"""

import logging
import math
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from invoice_review.models.invoice import (
    InvoiceDocument,
    now_iso,
    validate_invoice_update,
    validate_new_invoice,
)
from invoice_review.persistence.base import InvoiceRepository, Record
from invoice_review.persistence.memory_repository import MemoryInvoiceRepository
from invoice_review.persistence.mongo_repository import MongoInvoiceRepository
from invoice_review.shared.config import Settings
from invoice_review.shared.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# MongoDB encodes skip and limit as signed 64-bit integers
MAX_OFFSET = 2**63 - 1


class Pagination(BaseModel):
    """Pagination block of a listing response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int


class InvoiceListing(BaseModel):
    """Listing response payload."""

    invoices: list[Record]
    pagination: Pagination


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def parse_pagination(page: Any, limit: Any) -> tuple[int, int]:
    """Parse raw page/limit values, falling back to page=1, limit=10.

    Values are capped so that the skip offset ``(page - 1) * limit`` fits in a
    64-bit integer; pages past the end simply come back empty.

    Args:
        page: Raw page value (query string, None, int)
        limit: Raw page size value

    Returns:
        Tuple of (page, limit), both positive
    """
    page_size = min(_positive_int(limit, DEFAULT_LIMIT), MAX_OFFSET)
    page_number = min(_positive_int(page, DEFAULT_PAGE), MAX_OFFSET // page_size + 1)
    return page_number, page_size


class InvoiceService:
    """CRUD and search over invoice documents."""

    def __init__(
        self,
        settings: Settings,
        primary: InvoiceRepository | None = None,
        fallback: InvoiceRepository | None = None,
    ) -> None:
        """Initialize invoice service.

        Args:
            settings: Application settings
            primary: Durable repository (defaults to MongoDB from settings)
            fallback: Repository used while the durable one is unavailable
        """
        self.settings = settings
        self.primary = primary if primary is not None else MongoInvoiceRepository(settings)
        self.fallback = fallback if fallback is not None else MemoryInvoiceRepository()
        self._last_backend: str | None = None

    def _repository(self) -> InvoiceRepository:
        """Pick the backend for one call."""
        repository = self.primary if self.primary.is_available() else self.fallback

        if repository.backend_name != self._last_backend:
            if repository is self.fallback:
                logger.warning(
                    f"Durable invoice store '{self.primary.backend_name}' unavailable, "
                    f"serving from '{self.fallback.backend_name}' (data is not persisted)"
                )
            else:
                logger.info(f"Invoice store using '{repository.backend_name}'")
            self._last_backend = repository.backend_name

        return repository

    @property
    def last_backend(self) -> str | None:
        """Backend that served the most recent call."""
        return self._last_backend

    def active_backend(self) -> str:
        """Name of the backend that would serve a call right now."""
        return self._repository().backend_name

    def list_invoices(
        self,
        query: str | None = None,
        page: int | str | None = DEFAULT_PAGE,
        limit: int | str | None = DEFAULT_LIMIT,
    ) -> InvoiceListing:
        """List invoices newest first, optionally filtered by vendor name / invoice number.

        Args:
            query: Case-insensitive substring to search for
            page: 1-based page number (raw values are parsed leniently)
            limit: Page size (raw values are parsed leniently)

        Returns:
            InvoiceListing with the page and pagination totals
        """
        page_number, page_size = parse_pagination(page, limit)
        result = self._repository().list_invoices(query or None, page_number, page_size)

        return InvoiceListing(
            invoices=result.invoices,
            pagination=Pagination(
                page=page_number,
                limit=page_size,
                total=result.total,
                total_pages=math.ceil(result.total / page_size),
            ),
        )

    def get_invoice(self, file_id: str) -> Record:
        """Fetch one invoice.

        Raises:
            NotFoundError: If no invoice has this fileId
        """
        record = self._repository().get_invoice(file_id)
        if record is None:
            raise NotFoundError("Invoice not found")
        return record

    def create_invoice(self, payload: Any) -> Record:
        """Validate and store a new invoice.

        Args:
            payload: InvoiceDocument body (camelCase dict or model)

        Returns:
            The stored record

        Raises:
            ValidationError: If required fields are missing or malformed
            ConflictError: If the fileId is already stored
        """
        if isinstance(payload, InvoiceDocument):
            payload = payload.to_record()
        document = validate_new_invoice(payload)

        timestamp = now_iso()
        record = document.to_record()
        record.setdefault("createdAt", timestamp)
        record["updatedAt"] = timestamp

        stored = self._repository().insert_invoice(record)
        logger.info(f"Created invoice {document.file_id}")
        return stored

    def update_invoice(self, file_id: str, payload: Any) -> Record:
        """Apply a partial update.

        Client-supplied fileId/createdAt are discarded and updatedAt is
        always overwritten.

        Raises:
            ValidationError: If a supplied nested object is incomplete
            NotFoundError: If no invoice has this fileId
        """
        changes = validate_invoice_update(payload).to_changes()
        changes["updatedAt"] = now_iso()

        record = self._repository().update_invoice(file_id, changes)
        if record is None:
            raise NotFoundError("Invoice not found")

        logger.info(f"Updated invoice {file_id}")
        return record

    def delete_invoice(self, file_id: str) -> None:
        """Delete one invoice.

        Raises:
            NotFoundError: If no invoice has this fileId
        """
        if not self._repository().delete_invoice(file_id):
            raise NotFoundError("Invoice not found")
        logger.info(f"Deleted invoice {file_id}")
