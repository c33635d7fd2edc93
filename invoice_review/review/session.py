"""Review workflow state: one invoice being reviewed, and the invoice list.

``ReviewSession`` covers upload → extract → edit → save/delete for a single
document. ``InvoiceListState`` holds the current page of the list view and
keeps it in step with saves and deletes made from sessions it opened.
There is no optimistic concurrency check: the last save wins.
"""

import logging
import math
from collections.abc import Callable
from typing import Literal

from invoice_review.models.invoice import InvoiceDocument
from invoice_review.review.client import DashboardClient
from invoice_review.review.form import ReviewForm
from invoice_review.shared.errors import ValidationError

logger = logging.getLogger(__name__)

Mode = Literal["view", "edit"]


class ReviewSession:
    """State for reviewing one invoice."""

    def __init__(
        self,
        client: DashboardClient,
        document: InvoiceDocument | None = None,
        persisted: bool = False,
        mode: Mode = "edit",
        on_saved: Callable[[InvoiceDocument], None] | None = None,
        on_deleted: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize review session.

        Args:
            client: Dashboard API client
            document: Document to review (None until extraction ran)
            persisted: Whether the document is already stored on the server
            mode: 'view' (read only) or 'edit'
            on_saved: Called with the stored document after each save
            on_deleted: Called with the fileId after a delete
        """
        self.client = client
        self.form = ReviewForm(document) if document is not None else None
        self.persisted = persisted
        self.mode: Mode = mode
        self.file_url: str | None = None
        self._on_saved = on_saved
        self._on_deleted = on_deleted

    @property
    def document(self) -> InvoiceDocument | None:
        return self.form.document if self.form is not None else None

    def _require_form(self) -> ReviewForm:
        if self.form is None:
            raise ValidationError("No invoice loaded")
        return self.form

    def upload_and_extract(
        self, content: bytes, filename: str, model: str = "gemini"
    ) -> InvoiceDocument:
        """Upload a PDF, run extraction and load the result into the form.

        Raises:
            ValidationError: If the file or model is rejected
            UpstreamError: If extraction failed
        """
        upload = self.client.upload_pdf(content, filename)
        self.file_url = upload.file_url

        document = self.client.extract(upload.file_id, model)
        self.form = ReviewForm(document)
        self.persisted = False
        self.mode = "edit"

        logger.info(f"Extracted invoice {document.file_id} with {model}")
        return document

    def edit(self) -> None:
        self.mode = "edit"

    def save(self) -> InvoiceDocument:
        """Send the full document: create the first time, update afterwards.

        Raises:
            ValidationError: If nothing is loaded, the session is read only,
                or the server rejects the document
            ConflictError: If a first save hits an existing fileId
        """
        form = self._require_form()
        if self.mode != "edit":
            raise ValidationError("Invoice is open in view mode")

        if self.persisted:
            saved = self.client.update_invoice(form.document.file_id, form.document)
        else:
            saved = self.client.create_invoice(form.document)
            self.persisted = True

        form.mark_saved(saved)
        if self._on_saved is not None:
            self._on_saved(saved)
        return saved

    def delete(self) -> str:
        """Delete the invoice on the server and clear local state.

        Raises:
            NotFoundError: If the server has no such invoice
        """
        file_id = self._require_form().document.file_id
        self.client.delete_invoice(file_id)

        self.form = None
        self.persisted = False
        if self._on_deleted is not None:
            self._on_deleted(file_id)
        return file_id


class InvoiceListState:
    """Current page of the invoice list view."""

    def __init__(self, client: DashboardClient, limit: int = 10) -> None:
        self.client = client
        self.limit = limit
        self.invoices: list[InvoiceDocument] = []
        self.query = ""
        self.page = 1
        self.total = 0
        self.total_pages = 1

    def fetch(self, page: int = 1, query: str | None = None) -> list[InvoiceDocument]:
        """Load one page from the server."""
        if query is not None:
            self.query = query

        listing = self.client.list_invoices(self.query or None, page, self.limit)
        self.invoices = [InvoiceDocument.model_validate(item) for item in listing.invoices]
        self.page = listing.pagination.page
        self.total = listing.pagination.total
        self.total_pages = listing.pagination.total_pages
        return self.invoices

    def search(self, query: str) -> list[InvoiceDocument]:
        """Search by vendor name or invoice number, starting from page 1."""
        return self.fetch(1, query)

    def next_page(self) -> list[InvoiceDocument]:
        if self.page < self.total_pages:
            return self.fetch(self.page + 1)
        return self.invoices

    def previous_page(self) -> list[InvoiceDocument]:
        if self.page > 1:
            return self.fetch(self.page - 1)
        return self.invoices

    def apply_saved(self, document: InvoiceDocument) -> None:
        """Replace the listed copy of a saved invoice."""
        self.invoices = [
            document if item.file_id == document.file_id else item for item in self.invoices
        ]

    def remove_local(self, file_id: str) -> None:
        before = len(self.invoices)
        self.invoices = [item for item in self.invoices if item.file_id != file_id]
        self.total -= before - len(self.invoices)
        self.total_pages = math.ceil(self.total / self.limit)

    def delete(self, file_id: str) -> None:
        """Delete on the server, then drop it from the local list."""
        self.client.delete_invoice(file_id)
        self.remove_local(file_id)

    def open(self, file_id: str, mode: Mode = "view") -> ReviewSession:
        """Open a listed (or fetched) invoice in a review session."""
        document = next((item for item in self.invoices if item.file_id == file_id), None)
        if document is None:
            document = self.client.get_invoice(file_id)

        return ReviewSession(
            self.client,
            document,
            persisted=True,
            mode=mode,
            on_saved=self.apply_saved,
            on_deleted=self.remove_local,
        )
