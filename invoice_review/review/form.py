"""Editable copy of one invoice document.

Field names may be given in either spelling (``unitPrice`` or
``unit_price``). Editing a line item's unit price or quantity recomputes that
line's total immediately. Numeric inputs are parsed from strings, and blank or
invalid values become 0. Document-level subtotal and total are independent
fields and are never recomputed.
"""

import math
from typing import Any

from pydantic import BaseModel

from invoice_review.models.invoice import InvoiceDocument, LineItem, line_total

RECOMPUTING_FIELDS = ("unit_price", "quantity")
NUMERIC_FIELDS = ("unit_price", "quantity", "total")
INVOICE_NUMERIC_FIELDS = ("subtotal", "tax_percent", "total")


def _to_number(value: Any) -> float:
    """Parse form input as a number; anything unparseable counts as 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _attribute(model: BaseModel, field: str) -> str:
    fields = type(model).model_fields
    if field in fields:
        return field
    for name, info in fields.items():
        if info.alias == field:
            return name
    raise KeyError(f"Unknown field for {type(model).__name__}: {field}")


class ReviewForm:
    """Client-held mutable copy of an InvoiceDocument."""

    def __init__(self, document: InvoiceDocument) -> None:
        self._saved = document.model_copy(deep=True)
        self.document = document.model_copy(deep=True)

    @property
    def is_dirty(self) -> bool:
        """True if the document differs from the last saved/loaded version."""
        return self.document != self._saved

    @property
    def line_items(self) -> list[LineItem]:
        return self.document.invoice.line_items

    def update_vendor(self, field: str, value: Any) -> None:
        vendor = self.document.vendor
        setattr(vendor, _attribute(vendor, field), value)

    def update_invoice(self, field: str, value: Any) -> None:
        invoice = self.document.invoice
        name = _attribute(invoice, field)
        if name == "line_items":
            raise KeyError("Edit line items with the line item methods")
        setattr(invoice, name, _to_number(value) if name in INVOICE_NUMERIC_FIELDS else value)

    def update_line_item(self, index: int, field: str, value: Any) -> LineItem:
        """Set one field of a line item.

        Raises:
            IndexError: If there is no line item at ``index``
        """
        item = self.line_items[index]
        name = _attribute(item, field)
        setattr(item, name, _to_number(value) if name in NUMERIC_FIELDS else value)

        if name in RECOMPUTING_FIELDS:
            item.total = line_total(item.unit_price, item.quantity)
        return item

    def add_line_item(self) -> LineItem:
        item = LineItem(description="", unit_price=0, quantity=1, total=0)
        self.line_items.append(item)
        return item

    def remove_line_item(self, index: int) -> None:
        del self.line_items[index]

    def reset(self) -> None:
        """Discard unsaved edits."""
        self.document = self._saved.model_copy(deep=True)

    def mark_saved(self, document: InvoiceDocument) -> None:
        """Adopt the server's copy after a successful save."""
        self._saved = document.model_copy(deep=True)
        self.document = document.model_copy(deep=True)
