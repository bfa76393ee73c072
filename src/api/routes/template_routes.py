"""
Template and record type discovery routes.
"""
from typing import List
from fastapi import APIRouter, Depends, Response
from src.core.auth_dependencies import verify_token
from src.core.dependencies import get_template_service
from src.models.dto.bulk_upload_dto import ApiResponse, SupportedTableResponse
from src.services.template_service import XLSX_MEDIA_TYPE, TemplateService

router = APIRouter(prefix="/bulk-upload/templates", tags=["Templates"])


@router.get("/supported", response_model=ApiResponse[List[SupportedTableResponse]])
def get_supported_tables(
    user_id: str = Depends(verify_token),
    service: TemplateService = Depends(get_template_service)
):
    """List the record types that can be detected in uploads."""
    tables = service.supported_tables()
    return ApiResponse(success=True, message=f"{len(tables)} supported record types", data=tables)


@router.get("/{table_type}")
def download_template(
    table_type: str,
    user_id: str = Depends(verify_token),
    service: TemplateService = Depends(get_template_service)
):
    """Download an Excel template for a record type."""
    content = service.generate(table_type)
    file_name = service.template_file_name(table_type)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'}
    )
