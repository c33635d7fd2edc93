"""LLM-based extraction provider for Gemini and Groq.

Both services expose OpenAI-compatible chat completion endpoints, so one
OpenAI client per model is enough. The stored PDF is read back from blob
storage and attached to the request as an inline file part; the model is
asked to answer with JSON in the canonical invoice shape.

Includes retry logic with exponential backoff for transient API errors.
Requires GEMINI_API_KEY and/or GROQ_API_KEY environment variables.
"""

import base64
import json
import logging
import os
import re
from typing import Any

from openai import APIConnectionError, APITimeoutError, OpenAI, RateLimitError
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invoice_review.extraction.base import ExtractionModel, ExtractionProvider, ExtractionResult
from invoice_review.models.invoice import InvoiceDocument, now_iso
from invoice_review.shared.config import Settings
from invoice_review.storage.service import StorageService, object_name_for

logger = logging.getLogger(__name__)

API_KEY_ENV = {
    ExtractionModel.GEMINI: "GEMINI_API_KEY",
    ExtractionModel.GROQ: "GROQ_API_KEY",
}

INVOICE_JSON_SHAPE = """{
  "vendor": {"name": "string", "address": "string", "taxId": "string"},
  "invoice": {
    "number": "string",
    "date": "YYYY-MM-DD",
    "currency": "string",
    "subtotal": number,
    "taxPercent": number,
    "total": number,
    "poNumber": "string",
    "poDate": "YYYY-MM-DD",
    "lineItems": [
      {"description": "string", "unitPrice": number, "quantity": number, "total": number}
    ]
  }
}"""


class LLMExtractionProvider(ExtractionProvider):
    """Extraction through hosted LLMs (Gemini, Groq)."""

    def __init__(self, settings: Settings, storage: StorageService | None = None) -> None:
        """Initialize LLM extraction provider.

        Args:
            settings: Application settings (model names and endpoints)
            storage: Blob storage holding uploaded PDFs
        """
        super().__init__(settings)
        self.storage = storage if storage is not None else StorageService(settings)
        self._clients: dict[ExtractionModel, OpenAI] = {}

    @property
    def provider_name(self) -> str:
        return "llm"

    def _endpoint(self, model: ExtractionModel) -> tuple[str, str]:
        """Return (base_url, model name) for a selector."""
        if model is ExtractionModel.GEMINI:
            return self.settings.gemini_base_url, self.settings.gemini_model
        return self.settings.groq_base_url, self.settings.groq_model

    def has_credentials(self, model: ExtractionModel) -> bool:
        return bool(os.getenv(API_KEY_ENV[model]))

    def is_available(self) -> bool:
        """Check that PDFs can be read back and at least one API key is set."""
        return self.storage.is_available() and any(
            self.has_credentials(model) for model in ExtractionModel
        )

    def _get_client(self, model: ExtractionModel) -> OpenAI:
        api_key = os.getenv(API_KEY_ENV[model])
        client = self._clients.get(model)
        if client is None or client.api_key != api_key:
            base_url, _ = self._endpoint(model)
            client = OpenAI(api_key=api_key, base_url=base_url)
            self._clients[model] = client
        return client

    def _failure(self, model: ExtractionModel, error: str) -> ExtractionResult:
        return ExtractionResult(
            document=None,
            success=False,
            error=error,
            provider=self.provider_name,
            model=model,
        )

    def extract_invoice(self, file_id: str, model: ExtractionModel) -> ExtractionResult:
        """Extract an invoice from the stored PDF with the selected model.

        Args:
            file_id: Identifier assigned at upload
            model: Gemini or Groq

        Returns:
            ExtractionResult with a validated document, or an error and no document
        """
        if not self.has_credentials(model):
            return self._failure(model, f"{API_KEY_ENV[model]} environment variable not set")

        if not self.storage.is_available():
            return self._failure(model, "Blob storage not configured, PDF cannot be read")

        stored = self.storage.download_bytes(object_name_for(file_id))
        if not stored.success or not stored.data:
            return self._failure(model, f"PDF not available: {stored.error}")

        try:
            response_text = self._call_model_with_retry(model, file_id, stored.data)
            payload = self._parse_json_response(response_text)

            payload["fileId"] = file_id
            payload["fileName"] = f"invoice-{file_id}.pdf"
            payload["createdAt"] = now_iso()
            document = InvoiceDocument.model_validate(payload)

        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON from {model.value} response: {e}")
            return self._failure(model, f"JSON parsing failed: {e}")
        except PydanticValidationError as e:
            logger.warning(f"{model.value} response does not match invoice shape: {e}")
            return self._failure(model, f"Incomplete invoice data: {e.error_count()} errors")
        except Exception as e:
            logger.error(f"{model.value} extraction failed: {e}")
            return self._failure(model, f"Extraction failed: {e}")

        return ExtractionResult(
            document=document,
            success=True,
            provider=self.provider_name,
            model=model,
        )

    @retry(
        retry=retry_if_exception_type((APIConnectionError, APITimeoutError, RateLimitError)),
        wait=wait_exponential_jitter(initial=1, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _call_model_with_retry(self, model: ExtractionModel, file_id: str, pdf: bytes) -> str:
        """Call the chat completion API with retry logic for transient errors.

        Returns:
            Raw message content returned by the model
        """
        _, model_name = self._endpoint(model)
        encoded = base64.b64encode(pdf).decode("ascii")

        response = self._get_client(model).chat.completions.create(  # type: ignore[call-overload]
            model=model_name,
            messages=[
                {
                    "role": "system",
                    "content": "You are an invoice data extraction assistant.",
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self._build_extraction_prompt()},
                        {
                            "type": "file",
                            "file": {
                                "filename": object_name_for(file_id),
                                "file_data": f"data:application/pdf;base64,{encoded}",
                            },
                        },
                    ],
                },
            ],
            temperature=0,
        )
        return response.choices[0].message.content or ""

    @staticmethod
    def _build_extraction_prompt() -> str:
        return f"""Extract the invoice data from the attached PDF and return it as JSON \
in this exact format:
{INVOICE_JSON_SHAPE}

INSTRUCTIONS:
- Dates as YYYY-MM-DD
- Numbers without currency symbols or thousands separators
- Omit fields that are not present in the document
- Return ONLY JSON, no explanation"""

    @staticmethod
    def _parse_json_response(response_text: str) -> dict[str, Any]:
        """Extract and parse JSON from LLM response.

        Handles markdown code blocks around the JSON object.

        Raises:
            json.JSONDecodeError: If no valid JSON found
        """
        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", response_text)
        if json_match:
            result: dict[str, Any] = json.loads(json_match.group(1).strip())
            return result

        json_match = re.search(r"\{[\s\S]*\}", response_text)
        if json_match:
            result = json.loads(json_match.group(0))
            return result

        result = json.loads(response_text.strip())
        return result
