"""
Queued upload and job control routes.
"""
from typing import List
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from src.core.auth_dependencies import verify_token
from src.core.dependencies import get_bulk_upload_service, get_file_queue_service
from src.core.exceptions import JobNotFoundException
from src.models.dto.bulk_upload_dto import ApiResponse, CancelResponse, QueueStatusResponse, QueueUploadResponse
from src.api.routes.upload_routes import read_upload
from src.services.bulk_upload_service import BulkUploadService
from src.services.file_queue_service import FileQueueService

router = APIRouter(prefix="/bulk-upload")


def cancel_job(job_id: str, service: BulkUploadService) -> ApiResponse[CancelResponse]:
    if not service.cancel(job_id):
        raise JobNotFoundException(f"Job '{job_id}' not found or already finished")
    return ApiResponse(
        success=True,
        message="Cancellation requested",
        data=CancelResponse(job_id=job_id, status="Cancelling")
    )


@router.post(
    "/queue/upload",
    tags=["Queue"],
    response_model=ApiResponse[QueueUploadResponse],
    status_code=status.HTTP_202_ACCEPTED
)
async def queue_upload(
    files: List[UploadFile] = File(...),
    ignore_row_errors: bool = Form(False),
    continue_on_error: bool = Form(True),
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """
    Queue files for background processing. Poll the status endpoint or
    subscribe to the job's progress group for updates.
    """
    uploads = [await read_upload(f) for f in files]
    result = await service.upload_queued(uploads, user_id, ignore_row_errors, continue_on_error)
    return ApiResponse(success=True, message=f"Queued {result.total_files} file(s)", data=result)


@router.get("/queue/status/{job_id}", tags=["Queue"], response_model=ApiResponse[QueueStatusResponse])
def get_queue_status(
    job_id: str,
    user_id: str = Depends(verify_token),
    queue_service: FileQueueService = Depends(get_file_queue_service)
):
    """
    Get the aggregate and per-file status of a queued job.
    """
    result = queue_service.get_status(job_id)
    return ApiResponse(success=True, message=f"Job is {result.status}", data=result)


@router.post("/queue/cancel/{job_id}", tags=["Queue"], response_model=ApiResponse[CancelResponse])
async def cancel_queued_job(
    job_id: str,
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """Cancel a queued or running job."""
    return cancel_job(job_id, service)


@router.post("/cancellation/cancel/{job_id}", tags=["Cancellation"], response_model=ApiResponse[CancelResponse])
async def cancel_running_job(
    job_id: str,
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """Cancel any running job by id."""
    return cancel_job(job_id, service)
