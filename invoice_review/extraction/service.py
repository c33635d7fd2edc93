"""Extraction boundary used by the API and the review session.

``InvoiceExtractor.extract(file_id, model)`` validates the request before any
provider call and turns a failed provider result into ExtractionFailedError,
so callers either get a complete InvoiceDocument or an error.
"""

import logging

from invoice_review.extraction.base import ExtractionModel, ExtractionProvider
from invoice_review.models.invoice import InvoiceDocument
from invoice_review.shared.errors import ExtractionFailedError, ValidationError

logger = logging.getLogger(__name__)


def parse_model(value: str | None) -> ExtractionModel:
    """Parse a model selector.

    Raises:
        ValidationError: If the value is not one of the supported models
    """
    try:
        return ExtractionModel(value)
    except ValueError:
        options = " or ".join(f'"{name}"' for name in ExtractionModel.values())
        raise ValidationError(f"model must be either {options}") from None


class InvoiceExtractor:
    """Runs extraction requests against the configured provider."""

    def __init__(self, provider: ExtractionProvider) -> None:
        self.provider = provider

    def extract(self, file_id: str | None, model: str | ExtractionModel | None) -> InvoiceDocument:
        """Extract the invoice for an uploaded PDF.

        Args:
            file_id: Identifier returned by the upload
            model: 'gemini' or 'groq'

        Returns:
            Complete InvoiceDocument

        Raises:
            ValidationError: If fileId is missing or the model is unknown
            ExtractionFailedError: If the provider could not produce a document
        """
        if not file_id:
            raise ValidationError("fileId is required")
        selector = model if isinstance(model, ExtractionModel) else parse_model(model)

        result = self.provider.extract_invoice(file_id, selector)

        if not result.success or result.document is None:
            logger.error(
                f"Extraction failed for {file_id} "
                f"(provider={result.provider}, model={selector.value}): {result.error}"
            )
            raise ExtractionFailedError()

        return result.document
