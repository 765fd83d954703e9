"""FastAPI application for receipt ingestion, review and export.

Provides:
- Health and readiness checks
- Batch upload of receipts and rule files with sequential classification
- Record review and correction (single and bulk category edits)
- Vendor rule management (add, delete, import, export)
- Spreadsheet export of completed records
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from typing import Annotated, Any

from fastapi import (
    Body,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from pydantic import BaseModel, ConfigDict, Field, field_validator

from taxease.api import metrics
from taxease.classification.base import ReceiptClassifier
from taxease.export.workbook import EXPORT_FILENAME, export_workbook_bytes
from taxease.ingestion.batch import NO_NEW_RULES_NOTICE, BatchReport
from taxease.ingestion.session import AnalyzerSession, build_session
from taxease.ingestion.stats import ProcessingStats
from taxease.rules.persistence import RuleSlot
from taxease.shared.config import Settings, get_settings
from taxease.shared.errors import (
    DuplicateRuleError,
    InvalidRuleError,
    NothingToExportError,
    RecordNotFoundError,
)
from taxease.shared.models import InvoiceRecord, TaxCategory, UploadedFile, VendorRule

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    classifier: str
    classifier_available: bool


class StatsResponse(ProcessingStats):
    """Aggregate counters plus pipeline activity."""

    is_processing: bool
    queued: int


class InvoiceUpdateRequest(BaseModel):
    """User correction of one record."""

    description: str | None = None
    tax_category: TaxCategory | None = None

    @field_validator("tax_category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> TaxCategory | None:
        return None if value is None else TaxCategory.parse(value)


class BulkCategoryRequest(BaseModel):
    """Set one category on several records."""

    ids: list[str] = Field(..., min_length=1)
    tax_category: TaxCategory

    @field_validator("tax_category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> TaxCategory:
        return TaxCategory.parse(value)


class BulkCategoryResponse(BaseModel):
    updated: int


class RuleCreateRequest(BaseModel):
    """New vendor rule; accepts rule file (camelCase) or snake_case keys."""

    model_config = ConfigDict(populate_by_name=True)

    vendor_name_pattern: str = Field(alias="vendorNamePattern")
    tax_category: str = Field(alias="taxCategory")


class RuleImportResponse(BaseModel):
    rules_added: int
    notice: str | None = None


def get_session(request: Request) -> AnalyzerSession:
    """Dependency returning the session wired into the app."""
    session: AnalyzerSession = request.app.state.session
    return session


SessionDep = Annotated[AnalyzerSession, Depends(get_session)]


def create_app(
    settings: Settings | None = None,
    classifier: ReceiptClassifier | None = None,
    rule_slot: RuleSlot | None = None,
) -> FastAPI:
    """Build the API application around a fresh analyzer session.

    Args:
        settings: Application settings (loaded from the environment when omitted)
        classifier: Classification provider (created from settings when omitted)
        rule_slot: Rule persistence (JSON file at settings.rules_path when omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title="TaxEase Analyzer",
        description="Receipt classification into tax deduction categories",
        version=settings.service_version,
    )
    app.state.session = build_session(
        settings,
        classifier=classifier,
        rule_slot=rule_slot,
        on_classified=metrics.record_classification,
    )

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Middleware to collect request count and duration metrics."""
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
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

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check() -> HealthResponse:
        """Health check endpoint for liveness probe."""
        return HealthResponse(
            status="healthy", version=settings.service_version, service=settings.service_name
        )

    @app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
    def readiness_check(session: SessionDep) -> ReadinessResponse:
        """Readiness check reporting whether the classifier is configured."""
        classifier = session.classifier
        return ReadinessResponse(
            ready=True,
            classifier=classifier.provider_name,
            classifier_available=classifier.is_available(),
        )

    @app.get("/metrics", tags=["Monitoring"])
    def get_metrics() -> Response:
        """Prometheus metrics endpoint."""
        metrics_data, content_type = metrics.get_metrics()
        return Response(content=metrics_data, media_type=content_type)

    @app.post("/api/v1/batches", response_model=BatchReport, tags=["Ingestion"])
    async def upload_batch(
        session: SessionDep,
        files: list[UploadFile] = File(  # noqa: B008
            ..., description="Receipts (image/PDF) and rule files (JSON)"
        ),
        wait: bool = Query(False, description="Respond only after all receipts are classified"),
    ) -> BatchReport:
        """Upload a mixed batch of receipts and vendor rule files.

        Rule files are imported first, in one commit, so their rules apply to
        the receipts of the same batch. Receipts are queued as pending records
        and classified one at a time in upload order.

        ## Error Handling

        - Returns 400 if a file has no name or exceeds the upload size limit
        - A rule file that is not a JSON array is reported in `rule_file_errors`
        - A receipt that cannot be classified ends in status `error`
        """
        documents: list[UploadedFile] = []
        for upload in files:
            if not upload.filename:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST, detail="No filename provided"
                )
            content = await upload.read()
            if len(content) > settings.max_upload_bytes:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"File too large: {upload.filename}",
                )
            metrics.document_upload_size_bytes.observe(len(content))
            documents.append(
                UploadedFile(
                    filename=upload.filename, content=content, media_type=upload.content_type
                )
            )

        report = await session.coordinator.ingest(documents, wait=wait)
        if report.rules_added:
            metrics.rules_imported_total.inc(report.rules_added)
        return report

    @app.get("/api/v1/invoices", response_model=list[InvoiceRecord], tags=["Invoices"])
    def list_invoices(session: SessionDep) -> list[InvoiceRecord]:
        """List all records in upload order."""
        return list(session.records.records)

    @app.patch("/api/v1/invoices/{record_id}", response_model=InvoiceRecord, tags=["Invoices"])
    def update_invoice(
        record_id: str,
        update: InvoiceUpdateRequest,
        session: SessionDep,
    ) -> InvoiceRecord:
        """Correct the description or category of one record."""
        try:
            return session.records.update_by_id(record_id, update.model_dump(exclude_none=True))
        except RecordNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    @app.post(
        "/api/v1/invoices/bulk-category", response_model=BulkCategoryResponse, tags=["Invoices"]
    )
    def bulk_update_category(
        request: BulkCategoryRequest,
        session: SessionDep,
    ) -> BulkCategoryResponse:
        """Set one category on several records; unknown ids are ignored."""
        updated = session.records.bulk_update_category(request.ids, request.tax_category)
        return BulkCategoryResponse(updated=updated)

    @app.get("/api/v1/stats", response_model=StatsResponse, tags=["Invoices"])
    def get_stats(session: SessionDep) -> StatsResponse:
        """Progress counters and deductible total, computed on each request."""
        return StatsResponse(
            **session.stats().model_dump(),
            is_processing=session.pipeline.is_processing,
            queued=session.pipeline.queued,
        )

    @app.get("/api/v1/rules", response_model=list[VendorRule], tags=["Rules"])
    def list_rules(session: SessionDep) -> list[VendorRule]:
        """List vendor rules in evaluation order."""
        return list(session.rules.rules)

    @app.post(
        "/api/v1/rules",
        response_model=VendorRule,
        status_code=status.HTTP_201_CREATED,
        tags=["Rules"],
    )
    def add_rule(
        request: RuleCreateRequest,
        session: SessionDep,
    ) -> VendorRule:
        """Add one vendor rule and re-apply the rule set to existing records."""
        try:
            return session.rules.add_rule(request.vendor_name_pattern, request.tax_category)
        except InvalidRuleError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        except DuplicateRuleError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    @app.delete(
        "/api/v1/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Rules"]
    )
    def delete_rule(rule_id: str, session: SessionDep) -> Response:
        """Delete a rule; categories it already assigned are kept."""
        if not session.rules.delete_rule(rule_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=f"Rule not found: {rule_id}"
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/api/v1/rules/import", response_model=RuleImportResponse, tags=["Rules"])
    def import_rules(
        session: SessionDep,
        entries: list[Any] = Body(..., description="Rule entries in the rule file format"),
    ) -> RuleImportResponse:
        """Import rule entries in the rule file format."""
        added = session.rules.import_rules(entries)
        if added:
            metrics.rules_imported_total.inc(added)
        return RuleImportResponse(
            rules_added=added, notice=None if added else NO_NEW_RULES_NOTICE
        )

    @app.get("/api/v1/rules/export", tags=["Rules"])
    def export_rules(session: SessionDep) -> Response:
        """Download the rule set as an importable JSON file."""
        return Response(
            content=session.rules.export_rules(),
            media_type="application/json",
            headers={"Content-Disposition": 'attachment; filename="taxease_rules.json"'},
        )

    @app.get("/api/v1/export", tags=["Export"])
    def export_summary(session: SessionDep) -> Response:
        """Download the tax summary workbook of completed records."""
        try:
            content = export_workbook_bytes(session.records.records)
        except NothingToExportError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        return Response(
            content=content,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
        )

    return app


app = create_app()
