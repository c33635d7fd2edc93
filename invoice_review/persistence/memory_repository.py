"""In-process invoice repository used when MongoDB is not reachable.

Mirrors the MongoDB repository semantics (filter, sort, slice) over a plain
list. Nothing survives a restart and there is no locking: concurrent creates
with the same fileId can both pass the existence check.
"""

import copy
import logging

from invoice_review.persistence.base import InvoicePage, InvoiceRepository, Record, matches_query
from invoice_review.shared.errors import ConflictError

logger = logging.getLogger(__name__)


class MemoryInvoiceRepository(InvoiceRepository):
    """Ordered in-memory collection of invoice records."""

    def __init__(self) -> None:
        self._records: list[Record] = []

    @property
    def backend_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True

    def _index_of(self, file_id: str) -> int | None:
        for index, record in enumerate(self._records):
            if record.get("fileId") == file_id:
                return index
        return None

    def list_invoices(self, query: str | None, page: int, limit: int) -> InvoicePage:
        records = self._records
        if query:
            records = [record for record in records if matches_query(record, query)]

        # ISO strings compare like MongoDB sorts them
        ordered = sorted(records, key=lambda record: record.get("createdAt") or "", reverse=True)

        skip = (page - 1) * limit
        return InvoicePage(
            invoices=copy.deepcopy(ordered[skip : skip + limit]),
            total=len(ordered),
        )

    def get_invoice(self, file_id: str) -> Record | None:
        index = self._index_of(file_id)
        if index is None:
            return None
        return copy.deepcopy(self._records[index])

    def insert_invoice(self, record: Record) -> Record:
        if self._index_of(record["fileId"]) is not None:
            raise ConflictError("Invoice with this fileId already exists")

        self._records.append(copy.deepcopy(record))
        logger.debug(f"Stored invoice {record['fileId']} in memory")
        return copy.deepcopy(record)

    def update_invoice(self, file_id: str, changes: Record) -> Record | None:
        index = self._index_of(file_id)
        if index is None:
            return None

        self._records[index] = {**self._records[index], **copy.deepcopy(changes)}
        return copy.deepcopy(self._records[index])

    def delete_invoice(self, file_id: str) -> bool:
        index = self._index_of(file_id)
        if index is None:
            return False

        del self._records[index]
        return True
