"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from attendance_ledger import __version__
from attendance_ledger.api.routes import expenses_router, health_router, ledgers_router
from attendance_ledger.config import get_settings
from attendance_ledger.database import dispose_db, init_db
from attendance_ledger.errors import (
    ConflictError,
    LedgerError,
    LedgerNotEditableError,
    LedgerNotFoundError,
    RejectionReason,
    StoreError,
    TransitionRejected,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

_REJECTION_STATUS = {
    RejectionReason.INVALID_STATE: status.HTTP_409_CONFLICT,
    RejectionReason.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RejectionReason.INSUFFICIENT_ROLE: status.HTTP_403_FORBIDDEN,
    RejectionReason.MISSING_COMMENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def _error_body(exc: LedgerError, detail: str | None = None) -> dict:
    return {"detail": detail or str(exc), "code": exc.code}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Attendance Ledger API",
        description="Monthly attendance, expenses and two-stage approval",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": "Request failed validation",
                "code": "REQUEST_INVALID",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(LedgerNotFoundError)
    async def not_found_handler(request: Request, exc: LedgerNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body(exc))

    @app.exception_handler(TransitionRejected)
    async def rejected_handler(request: Request, exc: TransitionRejected) -> JSONResponse:
        content = _error_body(exc)
        content["reason"] = exc.reason.value
        if isinstance(exc, ValidationFailed):
            content["violations"] = [v.to_dict() for v in exc.violations]
        return JSONResponse(
            status_code=_REJECTION_STATUS.get(exc.reason, status.HTTP_409_CONFLICT),
            content=content,
        )

    @app.exception_handler(LedgerNotEditableError)
    async def not_editable_handler(
        request: Request, exc: LedgerNotEditableError
    ) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_body(exc))

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_body(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Ledger store failure on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_error_body(exc, "Ledger store unavailable"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(ledgers_router, prefix="/api/v1")
    app.include_router(expenses_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
