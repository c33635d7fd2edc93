"""FastAPI application for the PDF invoice review dashboard.

Production-ready API with:
- PDF upload with validation and optional blob storage
- Invoice extraction through a pluggable provider (mock by default)
- Invoice list/search/CRUD over MongoDB with in-memory fallback
- Uniform response envelope: {success, data?, error?, message?}
- Health and readiness checks
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from typing import Any

from fastapi import APIRouter, Body, FastAPI, File, Request, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoice_review.api import metrics
from invoice_review.extraction.factory import create_extraction_provider
from invoice_review.extraction.service import InvoiceExtractor
from invoice_review.persistence.service import InvoiceService
from invoice_review.shared.config import get_settings
from invoice_review.shared.errors import DashboardError, ExtractionFailedError, ValidationError
from invoice_review.storage.service import StorageService
from invoice_review.upload.service import UploadService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PDF Review Dashboard",
    description="Upload invoices, extract fields, review and store them",
    version=settings.service_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

storage_service = StorageService(settings)
upload_service = UploadService(settings, storage_service)
extractor = InvoiceExtractor(create_extraction_provider(settings))
invoice_service = InvoiceService(settings)

api = APIRouter(prefix="/api")


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Uses the route template as endpoint label so invoice ids do not create
    one series per document.
    """
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint,
    ).observe(duration)

    return response


class ApiResponse(BaseModel):
    """Response envelope shared by every /api endpoint."""

    success: bool
    data: Any | None = None
    error: str | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    store_backend: str
    blob_storage: bool


class ExtractRequest(BaseModel):
    """Extraction request body. Both fields are checked by the extractor."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    file_id: str | None = Field(None, alias="fileId")
    model: str | None = None


def _error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=False, error=error).model_dump(exclude_none=True),
    )


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    """Convert domain errors into the response envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are validation errors (400), not 422."""
    fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
    return _error_response(status.HTTP_400_BAD_REQUEST, f"Invalid request: {fields}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (unknown routes, wrong methods) in the envelope."""
    error = "Route not found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
    return _error_response(exc.status_code, error)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log with traceback, return a generic 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Service banner."""
    return {
        "message": "PDF Review Dashboard API",
        "status": "OK",
        "environment": settings.environment,
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness checks."""
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint.

    The service is always ready: without MongoDB it serves from memory and
    without blob storage uploads are simply not persisted.
    """
    return ReadinessResponse(
        ready=True,
        store_backend=invoice_service.active_backend(),
        blob_storage=storage_service.health_check(),
    )


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@api.post(
    "/upload",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Files"],
)
def upload_pdf(
    file: UploadFile | None = File(None, description="Invoice PDF (max 25MB)"),  # noqa: B008
) -> ApiResponse:
    """Upload a PDF and get the fileId used for extraction and storage.

    ## Usage

    ```bash
    curl -X POST "http://localhost:8000/api/upload" -F "file=@invoice.pdf"
    ```

    ## Error Handling

    - Returns 400 if the file is missing, empty, not a PDF or larger than 25MB
    - Returns 200 without `fileUrl` if blob storage is not configured or fails
    """
    content = file.file.read() if file is not None else b""
    filename = file.filename if file is not None else None
    content_type = file.content_type if file is not None else None

    try:
        result = upload_service.accept(content, filename, content_type)
    except ValidationError:
        metrics.documents_uploaded_total.labels(status="rejected").inc()
        raise

    metrics.document_upload_size_bytes.observe(len(content))
    metrics.documents_uploaded_total.labels(
        status="stored" if result.persisted else "not_persisted"
    ).inc()

    return ApiResponse(
        success=True,
        data=result.model_dump(by_alias=True, exclude_none=True),
        message=(
            "File uploaded and stored successfully"
            if result.persisted
            else "File uploaded (not persisted)"
        ),
    )


@api.post(
    "/extract",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Extraction"],
)
def extract_invoice(request: ExtractRequest) -> ApiResponse:
    """Extract invoice fields for an uploaded PDF.

    Body: `{"fileId": "...", "model": "gemini" | "groq"}`

    - Returns 400 if fileId is missing or the model is not supported
    - Returns 500 with a generic message if extraction fails
    """
    model_label = request.model if request.model in ("gemini", "groq") else "invalid"
    start = time.time()
    try:
        document = extractor.extract(request.file_id, request.model)
    except ExtractionFailedError:
        metrics.extraction_requests_total.labels(model=model_label, status="failed").inc()
        raise
    finally:
        if model_label != "invalid":
            metrics.extraction_processing_duration_seconds.labels(model=model_label).observe(
                time.time() - start
            )

    metrics.extraction_requests_total.labels(model=model_label, status="success").inc()
    return ApiResponse(
        success=True,
        data=document.to_record(),
        message=f"Data extracted successfully using {request.model}",
    )


def _count_store_operation(operation: str) -> None:
    metrics.invoice_store_operations_total.labels(
        backend=invoice_service.last_backend or "unknown", operation=operation
    ).inc()


@api.get(
    "/invoices",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Invoices"],
)
def list_invoices(
    q: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> ApiResponse:
    """List invoices newest first.

    `q` matches vendor name or invoice number (case-insensitive substring).
    Non-numeric `page` / `limit` fall back to 1 and 10.
    """
    listing = invoice_service.list_invoices(q, page, limit)
    _count_store_operation("list")
    return ApiResponse(success=True, data=listing.model_dump(by_alias=True))


@api.get(
    "/invoices/{file_id}",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Invoices"],
)
def get_invoice(file_id: str) -> ApiResponse:
    """Fetch one invoice (404 if absent)."""
    record = invoice_service.get_invoice(file_id)
    _count_store_operation("get")
    return ApiResponse(success=True, data=record)


@api.post(
    "/invoices",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    tags=["Invoices"],
)
def create_invoice(payload: dict[str, Any] = Body(...)) -> ApiResponse:  # noqa: B008
    """Store a reviewed invoice.

    - Returns 400 if fileId, fileName, vendor.name, invoice.number or invoice.date is missing
    - Returns 409 if an invoice with this fileId already exists
    """
    record = invoice_service.create_invoice(payload)
    _count_store_operation("create")
    return ApiResponse(success=True, data=record, message="Invoice created successfully")


@api.put(
    "/invoices/{file_id}",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Invoices"],
)
def update_invoice(file_id: str, payload: dict[str, Any] = Body(...)) -> ApiResponse:  # noqa: B008
    """Partially update an invoice.

    fileId and createdAt in the body are ignored; updatedAt is always stamped.
    """
    record = invoice_service.update_invoice(file_id, payload)
    _count_store_operation("update")
    return ApiResponse(success=True, data=record, message="Invoice updated successfully")


@api.delete(
    "/invoices/{file_id}",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Invoices"],
)
def delete_invoice(file_id: str) -> ApiResponse:
    """Delete an invoice (404 if absent)."""
    invoice_service.delete_invoice(file_id)
    _count_store_operation("delete")
    return ApiResponse(success=True, message="Invoice deleted successfully")


@api.get(
    "/files/{file_id}",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    tags=["Files"],
)
def get_file_url(file_id: str) -> ApiResponse:
    """URL of the stored PDF (placeholder when blob storage is not configured)."""
    return ApiResponse(
        success=True,
        data={"fileUrl": upload_service.file_url(file_id)},
        message="File URL retrieved",
    )


app.include_router(api)


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("invoice_review.api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
