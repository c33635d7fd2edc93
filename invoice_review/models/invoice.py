"""Invoice document models shared by extraction, persistence and review.

The wire format is camelCase JSON (``fileId``, ``lineItems``, ``taxPercent``);
attributes are snake_case. Models accept either spelling and always dump by
alias so records stored in MongoDB or memory look the same as API payloads.
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from invoice_review.shared.errors import ValidationError

IMMUTABLE_FIELDS = ("fileId", "createdAt")


def _not_blank(value: str) -> str:
    if not value.strip():
        raise PydanticCustomError("blank", "must not be empty")
    return value


RequiredText = Annotated[str, AfterValidator(_not_blank)]


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def line_total(unit_price: float, quantity: float) -> float:
    """Total of one line item."""
    return unit_price * quantity


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Vendor(_CamelModel):
    """Invoice issuer."""

    name: RequiredText = Field(..., description="Vendor company name")
    address: str | None = Field(None, description="Vendor postal address")
    tax_id: str | None = Field(None, description="Vendor tax identifier")


class LineItem(_CamelModel):
    """Single billed line.

    ``total`` is stored as given; only the review form keeps it equal to
    ``unit_price * quantity``.
    """

    description: str = ""
    unit_price: float
    quantity: float
    total: float


class InvoiceDetails(_CamelModel):
    """Invoice header plus its ordered line items."""

    number: RequiredText = Field(..., description="Invoice number")
    date: RequiredText = Field(..., description="Issue date (ISO date, not enforced)")
    currency: str | None = Field("USD", description="Currency code (not enforced)")
    subtotal: float | None = None
    tax_percent: float | None = None
    total: float | None = None
    po_number: str | None = None
    po_date: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)


class InvoiceDocument(_CamelModel):
    """Canonical persisted invoice record, keyed by ``file_id``."""

    file_id: RequiredText = Field(..., description="Identifier assigned at upload")
    file_name: RequiredText = Field(..., description="Original upload name")
    vendor: Vendor
    invoice: InvoiceDetails
    created_at: str | None = Field(None, description="Set once at creation")
    updated_at: str | None = Field(None, description="Stamped on every mutation")

    def to_record(self) -> dict[str, Any]:
        """Dump as the camelCase dict handed to persistence and the API."""
        return self.model_dump(by_alias=True, exclude_none=True)


class InvoiceUpdate(_CamelModel):
    """Partial update body.

    Only top-level fields present in the payload are applied; a nested
    object that is present replaces the stored one and must be complete.
    ``fileId`` and ``createdAt`` are not fields here and are always dropped.
    """

    file_name: RequiredText | None = None
    vendor: Vendor | None = None
    invoice: InvoiceDetails | None = None

    def to_changes(self) -> dict[str, Any]:
        """Dump only the fields the client actually sent."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        sent = {type(self).model_fields[name].alias or name for name in self.model_fields_set}
        return {key: value for key, value in data.items() if key in sent}


def _describe(exc: PydanticValidationError) -> str:
    missing: list[str] = []
    invalid: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "body"
        if error["type"] in ("missing", "blank"):
            missing.append(location)
        else:
            invalid.append(f"{location} ({error['msg']})")

    parts = []
    if missing:
        parts.append(f"Missing required fields: {', '.join(missing)}")
    if invalid:
        parts.append(f"Invalid fields: {', '.join(invalid)}")
    return "; ".join(parts)


def validate_new_invoice(payload: Any) -> InvoiceDocument:
    """Validate a create payload.

    Raises:
        ValidationError: If required fields are missing/empty or a field has the wrong type
    """
    try:
        return InvoiceDocument.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e


def validate_invoice_update(payload: Any) -> InvoiceUpdate:
    """Validate a partial update payload, ignoring immutable fields.

    Raises:
        ValidationError: If a supplied nested object is incomplete or malformed
    """
    if isinstance(payload, dict):
        payload = {key: value for key, value in payload.items() if key not in IMMUTABLE_FIELDS}
    try:
        return InvoiceUpdate.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from e
