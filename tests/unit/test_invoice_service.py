"""Unit tests for the invoice service and its backend selection."""

import logging
from unittest.mock import patch

import mongomock
import pytest

from invoice_review.models.invoice import InvoiceDocument
from invoice_review.persistence.memory_repository import MemoryInvoiceRepository
from invoice_review.persistence.mongo_repository import MongoInvoiceRepository
from invoice_review.persistence.service import InvoiceService, parse_pagination
from invoice_review.shared.config import Settings
from invoice_review.shared.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def settings() -> Settings:
    return Settings(mongodb_uri="")


@pytest.fixture
def service(settings: Settings) -> InvoiceService:
    """Service without a durable store, so every call uses memory."""
    return InvoiceService(settings)


class TestParsePagination:
    """Test lenient page/limit parsing."""

    @pytest.mark.parametrize(
        ("page", "limit", "expected"),
        [
            (None, None, (1, 10)),
            ("2", "5", (2, 5)),
            ("abc", "xyz", (1, 10)),
            ("0", "-3", (1, 10)),
            (3, 20, (3, 20)),
            ("1" + "0" * 20, "10", ((2**63 - 1) // 10 + 1, 10)),
        ],
    )
    def test_parse(self, page, limit, expected) -> None:
        assert parse_pagination(page, limit) == expected


class TestCreate:
    """Test invoice creation."""

    def test_create_stamps_timestamps(self, service: InvoiceService, make_invoice) -> None:
        """Should set createdAt and updatedAt when the client sent neither."""
        stored = service.create_invoice(make_invoice())

        assert stored["createdAt"]
        assert stored["updatedAt"] == stored["createdAt"]

    def test_create_keeps_client_created_at(self, service: InvoiceService, make_invoice) -> None:
        """Should keep an extraction-provided createdAt."""
        stored = service.create_invoice(make_invoice(created_at="2024-01-01T00:00:00Z"))

        assert stored["createdAt"] == "2024-01-01T00:00:00Z"
        assert stored["updatedAt"] != "2024-01-01T00:00:00Z"

    def test_create_accepts_model(self, service: InvoiceService, make_invoice) -> None:
        """Should accept an already parsed document."""
        document = InvoiceDocument.model_validate(make_invoice(file_id="model"))

        stored = service.create_invoice(document)

        assert stored["fileId"] == "model"

    def test_create_does_not_recompute_totals(
        self, service: InvoiceService, make_invoice
    ) -> None:
        """Should store totals exactly as sent."""
        payload = make_invoice()
        payload["invoice"]["total"] = 1.0
        payload["invoice"]["lineItems"][0]["total"] = 2.0

        stored = service.create_invoice(payload)

        assert stored["invoice"]["total"] == 1.0
        assert stored["invoice"]["lineItems"][0]["total"] == 2.0

    def test_create_missing_required_field(self, service: InvoiceService, make_invoice) -> None:
        """Should reject incomplete payloads before touching the store."""
        payload = make_invoice()
        del payload["invoice"]["number"]

        with pytest.raises(ValidationError):
            service.create_invoice(payload)

        assert service.list_invoices().pagination.total == 0

    def test_create_duplicate(self, service: InvoiceService, make_invoice) -> None:
        """Should raise a conflict for an existing fileId."""
        service.create_invoice(make_invoice())

        with pytest.raises(ConflictError, match="already exists"):
            service.create_invoice(make_invoice())


class TestReadUpdateDelete:
    """Test get, update and delete."""

    def test_get_missing(self, service: InvoiceService) -> None:
        with pytest.raises(NotFoundError, match="Invoice not found"):
            service.get_invoice("nope")

    def test_update_ignores_immutable_fields(
        self, service: InvoiceService, make_invoice
    ) -> None:
        """Should never change fileId or createdAt."""
        created = service.create_invoice(make_invoice(file_id="x"))

        updated = service.update_invoice(
            "x", {"fileId": "y", "createdAt": "1999-01-01T00:00:00Z", "fileName": "renamed.pdf"}
        )

        assert updated["fileId"] == "x"
        assert updated["createdAt"] == created["createdAt"]
        assert updated["fileName"] == "renamed.pdf"
        with pytest.raises(NotFoundError):
            service.get_invoice("y")

    def test_update_advances_updated_at(self, service: InvoiceService, make_invoice) -> None:
        """Should overwrite updatedAt on every update."""
        with patch(
            "invoice_review.persistence.service.now_iso",
            side_effect=["2024-01-01T00:00:00.000000Z", "2024-06-01T00:00:00.000000Z"],
        ):
            created = service.create_invoice(make_invoice(file_id="t"))
            updated = service.update_invoice("t", {"updatedAt": "1990-01-01T00:00:00Z"})

        assert created["updatedAt"] == "2024-01-01T00:00:00.000000Z"
        assert updated["updatedAt"] == "2024-06-01T00:00:00.000000Z"
        assert updated["updatedAt"] > updated["createdAt"]

    def test_update_missing(self, service: InvoiceService) -> None:
        with pytest.raises(NotFoundError):
            service.update_invoice("nope", {"fileName": "a.pdf"})

    def test_delete_then_get(self, service: InvoiceService, make_invoice) -> None:
        """Should make the invoice unreachable after delete."""
        service.create_invoice(make_invoice(file_id="gone"))

        service.delete_invoice("gone")

        with pytest.raises(NotFoundError):
            service.get_invoice("gone")
        with pytest.raises(NotFoundError):
            service.delete_invoice("gone")


class TestListing:
    """Test listing and pagination totals."""

    def test_total_pages_rounds_up(self, service: InvoiceService, make_invoice) -> None:
        """Should compute ceil(total / limit)."""
        for index in range(15):
            service.create_invoice(make_invoice(file_id=f"f{index}"))

        listing = service.list_invoices(page="2", limit="10")

        assert len(listing.invoices) == 5
        assert listing.pagination.model_dump(by_alias=True) == {
            "page": 2,
            "limit": 10,
            "total": 15,
            "totalPages": 2,
        }

    def test_empty_listing(self, service: InvoiceService) -> None:
        """Should report zero pages when nothing matches."""
        listing = service.list_invoices(query="nothing")

        assert listing.invoices == []
        assert listing.pagination.total_pages == 0

    def test_page_past_end(self, service: InvoiceService, make_invoice) -> None:
        """Should return an empty page with the real totals."""
        service.create_invoice(make_invoice())

        listing = service.list_invoices(page=5)

        assert listing.invoices == []
        assert listing.pagination.total == 1

    @pytest.mark.parametrize("backend", ["memory", "mongodb"])
    def test_huge_page_capped_on_both_backends(
        self, settings: Settings, make_invoice, backend: str
    ) -> None:
        """Should return an empty page instead of overflowing the skip offset."""
        primary = MongoInvoiceRepository(settings, client=mongomock.MongoClient())
        service = InvoiceService(settings, primary=primary)

        with patch.object(primary, "is_available", return_value=backend == "mongodb"):
            service.create_invoice(make_invoice())
            listing = service.list_invoices(page=str(10**20), limit="10")

        assert service.last_backend == backend
        assert listing.invoices == []
        assert listing.pagination.total == 1
        assert (listing.pagination.page - 1) * listing.pagination.limit <= 2**63 - 1

    def test_search_by_vendor(self, service: InvoiceService, make_invoice) -> None:
        service.create_invoice(make_invoice(file_id="a", vendor="Acme Corp"))
        service.create_invoice(make_invoice(file_id="b", vendor="Globex"))

        listing = service.list_invoices(query="acme")

        assert [item["fileId"] for item in listing.invoices] == ["a"]


class TestBackendSelection:
    """Test durable/fallback switching."""

    def test_falls_back_without_uri(self, service: InvoiceService) -> None:
        assert service.active_backend() == "memory"

    def test_uses_primary_when_available(self, settings: Settings, make_invoice) -> None:
        """Should store in MongoDB while it answers."""
        primary = MongoInvoiceRepository(settings, client=mongomock.MongoClient())
        fallback = MemoryInvoiceRepository()
        service = InvoiceService(settings, primary=primary, fallback=fallback)

        with patch.object(primary, "is_available", return_value=True):
            service.create_invoice(make_invoice(file_id="durable"))

        assert service.last_backend == "mongodb"
        assert primary.get_invoice("durable") is not None
        assert fallback.get_invoice("durable") is None

    def test_switches_between_calls(self, settings: Settings, make_invoice, caplog) -> None:
        """Should drop to memory when the primary goes away and come back after."""
        primary = MongoInvoiceRepository(settings, client=mongomock.MongoClient())
        fallback = MemoryInvoiceRepository()
        service = InvoiceService(settings, primary=primary, fallback=fallback)

        with patch.object(primary, "is_available", side_effect=[True, False, True]):
            with caplog.at_level(logging.INFO, logger="invoice_review.persistence.service"):
                service.create_invoice(make_invoice(file_id="one"))
                service.create_invoice(make_invoice(file_id="two"))
                service.create_invoice(make_invoice(file_id="three"))

        assert primary.get_invoice("one") is not None
        assert fallback.get_invoice("two") is not None
        assert primary.get_invoice("three") is not None
        assert primary.get_invoice("two") is None
        assert any(
            record.levelno == logging.WARNING and "unavailable" in record.getMessage()
            for record in caplog.records
        )

    def test_transition_logged_once(self, service: InvoiceService, caplog) -> None:
        """Should warn about the fallback only when the backend changes."""
        with caplog.at_level(logging.WARNING, logger="invoice_review.persistence.service"):
            service.list_invoices()
            service.list_invoices()

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
