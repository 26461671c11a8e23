"""FastAPI application for template-preserving inventory reports."""

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool

from inventory_report import __version__
from inventory_report.config import Settings, validate_settings_on_startup
from inventory_report.config import settings as default_settings
from inventory_report.models import ErrorDetail, HealthResponse, ReportRequest
from inventory_report.services.query_service import PostgresQueryService
from inventory_report.services.report_service import ReportService
from inventory_report.services.storage import build_storage_backend
from inventory_report.utils.exceptions import ErrorCode, ReportError, ValidationError
from inventory_report.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

# Configure structured logging using settings
configure_logging(
    level=default_settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)


def build_report_service(app_settings: Settings) -> ReportService:
    """Wire the query service and, in redirect mode, the storage backend."""
    storage = (
        build_storage_backend(app_settings)
        if app_settings.delivery_mode == "redirect"
        else None
    )
    return ReportService(
        settings=app_settings,
        query_service=PostgresQueryService(app_settings.get_database_url()),
        storage=storage,
    )


def create_app(
    settings: Settings | None = None,
    report_service: ReportService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the process-wide instance.
        report_service: Pre-built orchestrator, mainly for tests.
    """
    app_settings = settings or default_settings

    app = FastAPI(
        title="Inventory Report Service",
        description=(
            "Generates inventory reports by replacing the data sheet of an Excel "
            "template with fresh PostgreSQL query results, preserving charts, "
            "pivot tables and formatting."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Configure CORS using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    # Validate settings on startup
    validate_settings_on_startup(app_settings)

    service = report_service or build_report_service(app_settings)
    app.state.report_service = service

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it to logs and echo it in the response."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(ReportError)
    async def report_exception_handler(
        request: Request, exc: ReportError
    ) -> JSONResponse:
        """Return structured error responses for all service exceptions."""
        request_id = getattr(request.state, "request_id", get_request_id())
        log = logger.warning if exc.http_status < 500 else logger.error
        log(
            f"Report Error: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail.from_error_code(
                exc.error_code,
                exc.message,
                details=exc.details if exc.details else None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return await report_exception_handler(
            request, ValidationError("Invalid report request", errors=errors)
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Custom exception handler for HTTP exceptions."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all exception handler for unexpected errors.

        Logs the full exception and returns a generic error response
        to avoid leaking internal details.
        """
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if app_settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail.from_error_code(
                ErrorCode.INTERNAL_ERROR,
                detail,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    async def deliver_report(query: str | None) -> Response:
        report = await run_in_threadpool(service.generate, query)

        if app_settings.delivery_mode == "download":
            return Response(
                content=report.content,
                media_type=report.content_type,
                headers={
                    "Content-Disposition": f'attachment; filename="{report.file_name}"'
                },
            )

        url = await run_in_threadpool(service.publish, report)
        logger.info("Redirecting to uploaded report", file_name=report.file_name)
        return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)

    error_responses: dict[int | str, dict[str, Any]] = {
        302: {"description": "Redirect to the uploaded report"},
        400: {"model": ErrorDetail, "description": "Query returned no rows"},
        500: {"model": ErrorDetail, "description": "Template or workbook error"},
        502: {"model": ErrorDetail, "description": "Database or storage failure"},
    }

    @app.get(
        "/api/report/generate",
        tags=["Report"],
        response_class=Response,
        responses=error_responses,
    )
    async def generate_report(
        query: Annotated[
            str | None, Query(description="SQL query; default query when omitted")
        ] = None,
    ) -> Response:
        """Generate the inventory report from the template.

        In ``download`` mode the workbook is returned as an attachment. In
        ``redirect`` mode it is uploaded to object storage and the client is
        redirected to its URL.
        """
        logger.info("Report requested", method="GET", custom_query=bool(query))
        return await deliver_report(query)

    @app.post(
        "/api/report/generate",
        tags=["Report"],
        response_class=Response,
        responses=error_responses,
    )
    async def generate_report_from_body(
        body: Annotated[ReportRequest | None, Body()] = None,
    ) -> Response:
        """Generate the inventory report using the query in the request body."""
        query = body.query if body else None
        logger.info("Report requested", method="POST", custom_query=bool(query))
        return await deliver_report(query)

    @app.get("/api/report/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Report service status and the template it is configured with."""
        request_id = getattr(request.state, "request_id", None)
        logger.debug("Health check requested", request_id=request_id)
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
            "template_file": app_settings.template_path,
            "sheet_name": app_settings.sheet_name,
        }

    logger.info("FastAPI application created successfully")
    return app


# Create the application instance
app = create_app()
