"""Abstract base class for extraction providers.

Enables switching between the fixed-payload mock and real AI services while
keeping one contract: a provider turns a stored PDF (by fileId) into an
InvoiceDocument, or reports failure without a partial document.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel

from invoice_review.models.invoice import InvoiceDocument
from invoice_review.shared.config import Settings


class ExtractionModel(str, Enum):
    """AI model a client may ask to run the extraction."""

    GEMINI = "gemini"
    GROQ = "groq"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class ExtractionResult(BaseModel):
    """Result of extraction operation.

    Attributes:
        document: Extracted invoice document or None if extraction failed
        success: Whether operation succeeded
        error: Error message if operation failed (server-side only)
        provider: Name of provider that performed extraction (e.g., 'mock', 'llm')
        model: Model selector the extraction ran with
    """

    document: InvoiceDocument | None
    success: bool
    error: str | None = None
    provider: str
    model: ExtractionModel


class ExtractionProvider(ABC):
    """Abstract base class for invoice extraction providers.

    Example implementations:
    - MockExtractionProvider: fixed payload, no network
    - LLMExtractionProvider: Gemini / Groq through OpenAI-compatible APIs
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def extract_invoice(self, file_id: str, model: ExtractionModel) -> ExtractionResult:
        """Extract an invoice document from the PDF stored under ``file_id``.

        Args:
            file_id: Identifier assigned at upload
            model: Model selector (already validated)

        Returns:
            ExtractionResult with a complete document or an error
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics."""
