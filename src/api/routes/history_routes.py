"""
Upload history routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from src.core import config
from src.core.auth_dependencies import verify_token
from src.core.dependencies import get_bulk_upload_service
from src.models.dto.bulk_upload_dto import ApiResponse, UploadHistoryPageResponse
from src.services.bulk_upload_service import BulkUploadService

router = APIRouter(prefix="/bulk-upload")


@router.get("/history", tags=["History"], response_model=ApiResponse[UploadHistoryPageResponse])
def get_upload_history(
    limit: Optional[int] = Query(default=None, ge=1, description="Maximum number of items to return"),
    next_token: Optional[str] = Query(default=None, description="Pagination token from previous response"),
    user_id: str = Depends(verify_token),
    service: BulkUploadService = Depends(get_bulk_upload_service)
):
    """
    Retrieve the caller's past uploads, newest first.

    - **limit**: Number of items per page
    - **next_token**: Token from previous response to get next page
    """
    page = service.get_history(user_id, limit or config.settings.history_default_page_size, next_token)
    return ApiResponse(success=True, message=f"{page.count} upload(s)", data=page)
