"""Abstract base class for invoice repositories.

Enables switching between the durable MongoDB store and the in-memory
fallback while keeping one contract for callers.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python

Records are plain camelCase dicts as produced by
``InvoiceDocument.to_record()``. Validation, timestamp stamping and stripping
of immutable fields happen before a repository is called.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

Record = dict[str, Any]


class InvoicePage(BaseModel):
    """One page of a listing.

    Attributes:
        invoices: Records on this page, newest first
        total: Number of records matching the query across all pages
    """

    invoices: list[Record]
    total: int


class InvoiceRepository(ABC):
    """Storage contract shared by every invoice backend.

    Search matches ``vendor.name`` or ``invoice.number`` as a case-insensitive
    substring. Listings are sorted by ``createdAt`` descending and sliced with
    ``skip = (page - 1) * limit``.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend identifier for logging/metrics (e.g. 'mongodb', 'memory')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the backend can serve requests right now."""

    @abstractmethod
    def list_invoices(self, query: str | None, page: int, limit: int) -> InvoicePage:
        """Return one page of records matching ``query`` (all when empty)."""

    @abstractmethod
    def get_invoice(self, file_id: str) -> Record | None:
        """Return the record for ``file_id`` or None."""

    @abstractmethod
    def insert_invoice(self, record: Record) -> Record:
        """Store a new record.

        Raises:
            ConflictError: If a record with the same fileId exists
        """

    @abstractmethod
    def update_invoice(self, file_id: str, changes: Record) -> Record | None:
        """Overwrite the given top-level fields and return the new record, or None."""

    @abstractmethod
    def delete_invoice(self, file_id: str) -> bool:
        """Remove the record. Returns False if it did not exist."""


def matches_query(record: Record, query: str) -> bool:
    """Case-insensitive substring match on vendor name or invoice number."""
    needle = query.lower()
    vendor_name = str((record.get("vendor") or {}).get("name") or "")
    invoice_number = str((record.get("invoice") or {}).get("number") or "")
    return needle in vendor_name.lower() or needle in invoice_number.lower()
