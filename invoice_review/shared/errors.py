"""Error taxonomy shared by the API, the stores and the review client.

Exception Hierarchy:
    DashboardError (base)
    ├── ValidationError        400
    ├── NotFoundError          404
    ├── ConflictError          409
    └── UpstreamError          500
        └── ExtractionFailedError

Every error carries the HTTP status it maps to, so the API can turn any of
them into the response envelope without a lookup table.
"""


class DashboardError(Exception):
    """Base exception for all dashboard errors.

    Attributes:
        message: Human-readable error message (safe to return to clients)
        status_code: HTTP status the error maps to
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DashboardError):
    """Raised when a request payload is missing fields or is malformed."""

    status_code = 400


class NotFoundError(DashboardError):
    """Raised when no invoice exists for the requested fileId."""

    status_code = 404


class ConflictError(DashboardError):
    """Raised when creating an invoice whose fileId is already stored."""

    status_code = 409


class UpstreamError(DashboardError):
    """Raised when a dependency (database, blob storage, AI service) fails.

    The message is generic; details belong in the server log only.
    """

    status_code = 500


class ExtractionFailedError(UpstreamError):
    """Raised when the extraction provider could not produce a document."""

    def __init__(self, message: str = "Failed to extract data from PDF") -> None:
        super().__init__(message)
