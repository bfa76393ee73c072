"""
Dependency injection container for FastAPI.
Provides singleton-like behavior for services and repositories.
"""
from functools import lru_cache
from src.repositories.job_status_repository import JobStatusRepository
from src.repositories.record_repository import RecordRepository
from src.repositories.upload_history_repository import UploadHistoryRepository
from src.services.bulk_processing_service import BulkProcessingService
from src.services.bulk_upload_service import BulkUploadService
from src.services.file_queue_service import FileQueueService
from src.services.job_cancellation_service import JobCancellationRegistry
from src.services.mappers import MapperRegistry
from src.services.progress_service import ProgressPublisher
from src.services.table_detection_service import TableDetectionService
from src.services.template_service import TemplateService
from src.services.upload_pipeline import UploadPipeline
from src.services.validation_service import ValidationService


@lru_cache()
def get_record_repository() -> RecordRepository:
    """Get RecordRepository singleton instance."""
    return RecordRepository()


@lru_cache()
def get_upload_history_repository() -> UploadHistoryRepository:
    """Get UploadHistoryRepository singleton instance."""
    return UploadHistoryRepository()


@lru_cache()
def get_job_status_repository() -> JobStatusRepository:
    """Get JobStatusRepository singleton instance."""
    return JobStatusRepository()


@lru_cache()
def get_progress_publisher() -> ProgressPublisher:
    """Get the process-wide ProgressPublisher."""
    return ProgressPublisher()


@lru_cache()
def get_cancellation_registry() -> JobCancellationRegistry:
    """Get the process-wide JobCancellationRegistry."""
    return JobCancellationRegistry()


@lru_cache()
def get_table_detection_service() -> TableDetectionService:
    return TableDetectionService()


@lru_cache()
def get_mapper_registry() -> MapperRegistry:
    return MapperRegistry()


@lru_cache()
def get_upload_pipeline() -> UploadPipeline:
    """Get UploadPipeline singleton instance with injected dependencies."""
    detection_service = get_table_detection_service()
    return UploadPipeline(
        detection_service=detection_service,
        validation_service=ValidationService(detection_service),
        processing_service=BulkProcessingService(
            record_repository=get_record_repository(),
            mapper_registry=get_mapper_registry(),
            publisher=get_progress_publisher()
        ),
        history_repository=get_upload_history_repository()
    )


@lru_cache()
def get_file_queue_service() -> FileQueueService:
    """Get FileQueueService singleton instance with injected dependencies."""
    return FileQueueService(
        pipeline=get_upload_pipeline(),
        cancellation_registry=get_cancellation_registry(),
        publisher=get_progress_publisher(),
        job_status_repository=get_job_status_repository()
    )


@lru_cache()
def get_bulk_upload_service() -> BulkUploadService:
    """Get BulkUploadService singleton instance with injected dependencies."""
    return BulkUploadService(
        pipeline=get_upload_pipeline(),
        queue_service=get_file_queue_service(),
        cancellation_registry=get_cancellation_registry(),
        publisher=get_progress_publisher(),
        history_repository=get_upload_history_repository()
    )


@lru_cache()
def get_template_service() -> TemplateService:
    return TemplateService(
        detection_service=get_table_detection_service(),
        mapper_registry=get_mapper_registry()
    )


def clear_caches() -> None:
    """Drop every cached instance so the next request builds fresh ones."""
    for getter in (
        get_record_repository,
        get_upload_history_repository,
        get_job_status_repository,
        get_progress_publisher,
        get_cancellation_registry,
        get_table_detection_service,
        get_mapper_registry,
        get_upload_pipeline,
        get_file_queue_service,
        get_bulk_upload_service,
        get_template_service,
    ):
        getter.cache_clear()
