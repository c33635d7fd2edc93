"""Shared fixtures for invoice tests."""

from collections.abc import Callable
from typing import Any

import pytest


@pytest.fixture
def make_invoice() -> Callable[..., dict[str, Any]]:
    """Factory for valid camelCase invoice payloads."""

    def _make(
        file_id: str = "file-1",
        vendor: str = "Acme Corp",
        number: str = "INV-001",
        created_at: str | None = None,
        **overrides: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fileId": file_id,
            "fileName": f"{file_id}.pdf",
            "vendor": {"name": vendor, "address": "1 Main St", "taxId": "12-3456789"},
            "invoice": {
                "number": number,
                "date": "2024-01-15",
                "currency": "USD",
                "subtotal": 100.0,
                "taxPercent": 10.0,
                "total": 110.0,
                "lineItems": [
                    {"description": "Widget", "unitPrice": 50.0, "quantity": 2.0, "total": 100.0}
                ],
            },
        }
        if created_at is not None:
            payload["createdAt"] = created_at
        payload.update(overrides)
        return payload

    return _make
