"""
Data Transfer Objects for the Bulk Upload API.
Defines response schemas for the upload, queue, template and history endpoints.
"""
from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from src.models.processing_result import ProcessingResult
from src.models.upload_job import FileQueue, QueuedFile, QueuedFileStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


T = TypeVar("T")


class ApiResponse(CamelModel, Generic[T]):
    """Envelope shared by all bulk upload endpoints."""
    success: bool
    message: str
    data: Optional[T] = None


class RowErrorResponse(CamelModel):
    file_name: Optional[str] = None
    row_number: int
    message: str


class ProcessingResultResponse(CamelModel):
    file_name: Optional[str] = None
    record_type: Optional[str] = None
    file_index: int = 0
    total_files: int = 1
    total_records: int = 0
    processed_records: int = 0
    failed_records: int = 0
    errors: List[RowErrorResponse] = []
    processed_at: datetime
    processing_time_ms: int = 0
    cancelled: bool = False

    @classmethod
    def from_result(cls, result: ProcessingResult) -> "ProcessingResultResponse":
        return cls.model_validate(result)


class MultipleUploadResponse(CamelModel):
    total_files: int
    processed_files: int = 0
    failed_files: int = 0
    total_records: int = 0
    processed_records: int = 0
    failed_records: int = 0
    processed_at: datetime
    total_processing_time_ms: int = 0
    file_results: List[ProcessingResultResponse] = []
    global_errors: List[str] = []
    overall_success: bool = False


class ProgressUploadResponse(CamelModel):
    job_id: str
    status: str
    result: Optional[ProcessingResultResponse] = None


class QueueUploadResponse(CamelModel):
    job_id: str
    total_files: int
    status: str = "Queued"


class QueuedFileStatusResponse(CamelModel):
    file_name: str
    file_index: int
    status: str
    record_type: Optional[str] = None
    processed_records: int = 0
    failed_records: int = 0
    total_records: int = 0
    processing_time_ms: int = 0
    error_count: int = 0
    errors: List[str] = []
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_queued_file(cls, queued_file: QueuedFile) -> "QueuedFileStatusResponse":
        return cls(
            file_name=queued_file.file_name,
            file_index=queued_file.file_index,
            status=queued_file.status.value,
            record_type=queued_file.record_type,
            processed_records=queued_file.processed_records,
            failed_records=queued_file.failed_records,
            total_records=queued_file.total_records,
            processing_time_ms=queued_file.processing_time_ms,
            error_count=len(queued_file.errors),
            errors=list(queued_file.errors),
            queued_at=queued_file.queued_at,
            started_at=queued_file.started_at,
            completed_at=queued_file.completed_at
        )


class QueueStatusResponse(CamelModel):
    job_id: str
    kind: str
    status: str
    total_files: int
    completed_files: int = 0
    failed_files: int = 0
    processing_file: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    files: List[QueuedFileStatusResponse] = []

    @classmethod
    def from_queue(cls, queue: FileQueue) -> "QueueStatusResponse":
        return cls(
            job_id=queue.job_id,
            kind=queue.kind.value,
            status=queue.status.value,
            total_files=queue.total_files,
            completed_files=queue.count(QueuedFileStatus.COMPLETED),
            failed_files=queue.count(QueuedFileStatus.FAILED),
            processing_file=queue.processing_file,
            error_message=queue.error_message,
            created_at=queue.created_at,
            completed_at=queue.completed_at,
            files=[QueuedFileStatusResponse.from_queued_file(f) for f in queue.files]
        )


class CancelResponse(CamelModel):
    job_id: str
    status: str


class UploadHistoryResponse(CamelModel):
    upload_id: str
    user_id: str
    record_type: str
    file_name: str
    total_records: int
    processed_records: int
    failed_records: int
    status: str
    processing_time_ms: int
    error_details: Optional[str] = None
    uploaded_at: datetime


class UploadHistoryPageResponse(CamelModel):
    items: List[UploadHistoryResponse]
    count: int
    next_token: Optional[str] = None


class TableColumnResponse(CamelModel):
    column_name: str
    data_type: str
    is_required: bool = False
    is_unique: bool = False
    max_length: Optional[int] = None
    default_value: Optional[str] = None
    description: Optional[str] = None
    allowed_values: Optional[List[str]] = None


class SupportedTableResponse(CamelModel):
    table_name: str
    display_name: str
    description: str
    primary_key_column: str
    supports_update: bool
    required_columns: List[str]
    columns: List[TableColumnResponse]
