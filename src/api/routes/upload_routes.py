"""
Bulk upload API routes.
Direct, multi-file and progress-streamed upload endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from src.core.auth_dependencies import verify_token
from src.core.dependencies import get_bulk_upload_service
from src.models.dto.bulk_upload_dto import (
    ApiResponse,
    MultipleUploadResponse,
    ProcessingResultResponse,
    ProgressUploadResponse
)
from src.models.upload_job import UploadedFile
from src.services.bulk_upload_service import BulkUploadService

router = APIRouter(prefix="/bulk-upload")


async def read_upload(file: UploadFile) -> UploadedFile:
    content = await file.read()
    return UploadedFile(file_name=file.filename or "", content=content)


@router.post("/core/upload", tags=["Bulk Upload"], response_model=ApiResponse[ProcessingResultResponse])
async def upload_file(
    file: UploadFile = File(..., description="CSV, JSON, XML or Excel file"),
    ignore_row_errors: bool = Form(False),
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """
    Upload a single file and process it synchronously.
    """
    result = await service.upload_direct(await read_upload(file), user_id, ignore_row_errors)
    return ApiResponse(
        success=result.failed_records == 0,
        message=f"Processed {result.processed_records} of {result.total_records} {result.record_type} records",
        data=result
    )


@router.post("/multiple/upload-multiple", tags=["Bulk Upload"], response_model=ApiResponse[MultipleUploadResponse])
async def upload_multiple_files(
    files: List[UploadFile] = File(..., description="Files processed in order"),
    ignore_row_errors: bool = Form(False),
    continue_on_error: bool = Form(True),
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """
    Upload several files and process them one after another in this request.

    - **continue_on_error**: keep going after a file fails
    """
    uploads = [await read_upload(f) for f in files]
    result = await service.upload_multiple(uploads, user_id, ignore_row_errors, continue_on_error)
    return ApiResponse(
        success=result.overall_success,
        message=f"Processed {result.processed_files} of {result.total_files} files",
        data=result
    )


@router.post("/progress/upload-with-progress", tags=["Bulk Upload"], response_model=ApiResponse[ProgressUploadResponse])
async def upload_with_progress(
    file: UploadFile = File(...),
    job_id: Optional[str] = Form(None, description="Client generated job id to subscribe to before uploading"),
    ignore_row_errors: bool = Form(False),
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """
    Upload a single file while progress events are published for its job id.
    """
    result = await service.upload_with_progress(await read_upload(file), user_id, ignore_row_errors, job_id)
    if result.status == "Cancelled":
        message = "Upload was cancelled"
    else:
        message = f"Processed {result.result.processed_records} of {result.result.total_records} records"
    return ApiResponse(success=result.status == "Completed", message=message, data=result)
