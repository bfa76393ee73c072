"""
Global exception handler for the Bulk Ingestion API.
Provides centralized error handling for all API exceptions.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from .exceptions import (
    StructuralError,
    ValidationException,
    UnsupportedFileTypeException,
    FileTooLargeException,
    PersistenceUnavailableException,
    JobNotFoundException,
    JobConflictException,
    RecordTypeNotFoundException
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""

    @app.exception_handler(JobNotFoundException)
    async def handle_job_not_found(request: Request, exc: JobNotFoundException):
        return JSONResponse(
            status_code=404,
            content={"error": "Not Found", "message": exc.message}
        )

    @app.exception_handler(RecordTypeNotFoundException)
    async def handle_record_type_not_found(request: Request, exc: RecordTypeNotFoundException):
        return JSONResponse(
            status_code=404,
            content={"error": "Not Found", "message": exc.message}
        )

    @app.exception_handler(JobConflictException)
    async def handle_job_conflict(request: Request, exc: JobConflictException):
        return JSONResponse(
            status_code=409,
            content={"error": "Conflict", "message": exc.message}
        )

    @app.exception_handler(StructuralError)
    async def handle_structural_error(request: Request, exc: StructuralError):
        return JSONResponse(
            status_code=400,
            content={"error": "File Processing Failed", "message": exc.message}
        )

    @app.exception_handler(ValidationException)
    async def handle_validation_error(request: Request, exc: ValidationException):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation Error", "message": exc.message}
        )

    @app.exception_handler(UnsupportedFileTypeException)
    async def handle_unsupported_file(request: Request, exc: UnsupportedFileTypeException):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation Error", "message": exc.message}
        )

    @app.exception_handler(FileTooLargeException)
    async def handle_file_too_large(request: Request, exc: FileTooLargeException):
        return JSONResponse(
            status_code=413,
            content={"error": "File Too Large", "message": exc.message}
        )

    @app.exception_handler(PersistenceUnavailableException)
    async def handle_persistence_error(request: Request, exc: PersistenceUnavailableException):
        logger.error("Persistence unavailable on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=503,
            content={"error": "Service Unavailable", "message": "The storage service is temporarily unavailable"}
        )

    @app.exception_handler(Exception)
    async def handle_generic_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "message": "An unexpected error occurred"}
        )
