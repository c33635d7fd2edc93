"""Fixed-payload extraction provider.

Returns the same invoice for every upload so the dashboard can be demoed and
tested without AI credentials. Only fileId, fileName and createdAt vary.
"""

import logging
import time

from invoice_review.extraction.base import ExtractionModel, ExtractionProvider, ExtractionResult
from invoice_review.models.invoice import InvoiceDocument, now_iso

logger = logging.getLogger(__name__)


def mock_invoice_payload(file_id: str) -> dict:
    """Canned extraction output for ``file_id``."""
    return {
        "fileId": file_id,
        "fileName": f"invoice-{file_id}.pdf",
        "vendor": {
            "name": "Acme Corporation",
            "address": "123 Business St, City, State 12345",
            "taxId": "12-3456789",
        },
        "invoice": {
            "number": "INV-2024-001",
            "date": "2024-01-15",
            "currency": "USD",
            "subtotal": 1000.00,
            "taxPercent": 8.5,
            "total": 1085.00,
            "poNumber": "PO-2024-001",
            "poDate": "2024-01-10",
            "lineItems": [
                {
                    "description": "Professional Services",
                    "unitPrice": 500.00,
                    "quantity": 2,
                    "total": 1000.00,
                }
            ],
        },
        "createdAt": now_iso(),
    }


class MockExtractionProvider(ExtractionProvider):
    """Extraction provider that never calls out."""

    @property
    def provider_name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return True

    def extract_invoice(self, file_id: str, model: ExtractionModel) -> ExtractionResult:
        delay = self.settings.extraction_mock_delay_seconds
        if delay:
            time.sleep(delay)

        logger.info(f"Mock extraction for {file_id} (model={model.value})")
        return ExtractionResult(
            document=InvoiceDocument.model_validate(mock_invoice_payload(file_id)),
            success=True,
            provider=self.provider_name,
            model=model,
        )
