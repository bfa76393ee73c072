"""
Bulk Upload Service for business logic.
Composes the upload pipeline into the direct, multi-file, progress-streamed
and queued upload strategies, and serves upload history.
"""
import logging
from datetime import datetime
from typing import List, Optional
from src.core import config
from src.core.exceptions import (
    BulkUploadException,
    FileTooLargeException,
    JobCancelledException,
    JobConflictException,
    StructuralError,
    UnsupportedFileTypeException,
    ValidationException
)
from src.models.dto.bulk_upload_dto import (
    MultipleUploadResponse,
    ProcessingResultResponse,
    ProgressUploadResponse,
    QueueUploadResponse,
    UploadHistoryPageResponse,
    UploadHistoryResponse
)
from src.models.processing_result import ProcessingResult
from src.models.upload_job import JobKind, UploadedFile
from src.repositories.upload_history_repository import UploadHistoryRepository
from src.services.file_queue_service import FileQueueService, QueuedUploadRequest
from src.services.job_cancellation_service import JobCancellationRegistry
from src.services.progress_service import ProgressPublisher
from src.services.upload_pipeline import UploadPipeline

logger = logging.getLogger(__name__)


class BulkUploadService:
    """Service for bulk upload operations."""

    def __init__(
        self,
        pipeline: UploadPipeline = None,
        queue_service: FileQueueService = None,
        cancellation_registry: JobCancellationRegistry = None,
        publisher: ProgressPublisher = None,
        history_repository: UploadHistoryRepository = None
    ):
        self.pipeline = pipeline or UploadPipeline()
        self.cancellation_registry = cancellation_registry or JobCancellationRegistry()
        self.publisher = publisher or ProgressPublisher()
        self.queue_service = queue_service or FileQueueService(
            pipeline=self.pipeline,
            cancellation_registry=self.cancellation_registry,
            publisher=self.publisher
        )
        self.history_repository = history_repository or self.pipeline.history_repository

    def check_upload(self, upload: UploadedFile) -> UploadedFile:
        """Validate extension and size, filling in the normalised extension."""
        upload.extension = self.pipeline.validation_service.validate_upload(upload.file_name, upload.size)
        return upload

    async def upload_direct(self, upload: UploadedFile, acting_user_id: str, ignore_row_errors: bool) -> ProcessingResultResponse:
        """
        Process one file synchronously without progress events.

        Raises:
            UnsupportedFileTypeException, FileTooLargeException: If the upload is rejected
            StructuralError: If the file cannot be processed
        """
        self.check_upload(upload)
        result = await self.pipeline.run(upload, acting_user_id, ignore_row_errors)
        return ProcessingResultResponse.from_result(result)

    async def upload_multiple(
        self,
        uploads: List[UploadedFile],
        acting_user_id: str,
        ignore_row_errors: bool,
        continue_on_error: bool
    ) -> MultipleUploadResponse:
        """
        Process several files in order within one request.

        A file fails when it is rejected, cannot be processed, or stores no rows.
        With continue_on_error false the first failed file stops the batch.
        """
        self._check_file_count(uploads)
        response = MultipleUploadResponse(total_files=len(uploads), processed_at=datetime.utcnow())
        started = datetime.utcnow()

        for index, upload in enumerate(uploads):
            file_failed = False
            try:
                self.check_upload(upload)
                result = await self.pipeline.run(
                    upload, acting_user_id, ignore_row_errors, file_index=index, total_files=len(uploads)
                )
                file_failed = result.history_status == "Failed"
            except (StructuralError, UnsupportedFileTypeException, FileTooLargeException) as e:
                result = self._failed_result(upload, index, len(uploads), e.message)
                response.global_errors.append(f"{upload.file_name}: {e.message}")
                file_failed = True

            response.file_results.append(ProcessingResultResponse.from_result(result))
            response.total_records += result.total_records
            response.processed_records += result.processed_records
            response.failed_records += result.failed_records
            if file_failed:
                response.failed_files += 1
            else:
                response.processed_files += 1

            if file_failed and not continue_on_error:
                skipped = len(uploads) - index - 1
                if skipped:
                    response.global_errors.append(
                        f"Processing stopped after '{upload.file_name}' failed; {skipped} file(s) not processed"
                    )
                break

        response.total_processing_time_ms = int((datetime.utcnow() - started).total_seconds() * 1000)
        response.overall_success = response.failed_files == 0 and response.failed_records == 0
        logger.info(
            "Multi-file upload finished: %d processed, %d failed of %d files",
            response.processed_files, response.failed_files, response.total_files
        )
        return response

    async def upload_with_progress(
        self,
        upload: UploadedFile,
        acting_user_id: str,
        ignore_row_errors: bool,
        job_id: Optional[str] = None
    ) -> ProgressUploadResponse:
        """
        Process one file synchronously while publishing progress for its job id.
        Cancellation is reported as a Cancelled outcome, not an error.

        Raises:
            JobConflictException: If the job id belongs to a job that is still running
        """
        self.check_upload(upload)
        job_id = job_id or self.publisher.generate_job_id()
        token = self.cancellation_registry.create_if_absent(job_id)
        if token is None:
            raise JobConflictException(f"Job '{job_id}' is already running")
        started = datetime.utcnow()

        try:
            detected, rows = await self.pipeline.load(upload, acting_user_id)

            self.publisher.publish_started(
                job_id, job_type=JobKind.PROGRESS.value, total_files=1, estimated_total_records=len(rows)
            )
            result = await self.pipeline.process_prepared(
                upload, detected, rows, acting_user_id, ignore_row_errors, job_id=job_id, cancellation=token
            )
        except JobCancelledException as e:
            partial = ProcessingResultResponse.from_result(e.result) if e.result is not None else None
            self.publisher.publish_completed(
                job_id, success=False, message="Upload was cancelled", data=partial, started_at=started
            )
            return ProgressUploadResponse(job_id=job_id, status="Cancelled", result=partial)
        except BulkUploadException as e:
            self.publisher.publish_error(job_id, e.message)
            raise
        except Exception:
            self.publisher.publish_error(job_id, "An unexpected error occurred")
            raise
        finally:
            self.cancellation_registry.remove(job_id, token)

        response = ProcessingResultResponse.from_result(result)
        self.publisher.publish_completed(
            job_id,
            success=result.failed_records == 0,
            message=f"Processed {result.processed_records} of {result.total_records} records",
            data=response,
            started_at=started
        )
        return ProgressUploadResponse(job_id=job_id, status="Completed", result=response)

    async def upload_queued(
        self,
        uploads: List[UploadedFile],
        acting_user_id: str,
        ignore_row_errors: bool,
        continue_on_error: bool
    ) -> QueueUploadResponse:
        """Validate every file up front, then hand the batch to the file queue."""
        self._check_file_count(uploads)
        for upload in uploads:
            self.check_upload(upload)

        job_id = await self.queue_service.enqueue(QueuedUploadRequest(
            files=uploads,
            acting_user_id=acting_user_id,
            ignore_row_errors=ignore_row_errors,
            continue_on_error=continue_on_error
        ))
        return QueueUploadResponse(job_id=job_id, total_files=len(uploads), status="Queued")

    def cancel(self, job_id: str) -> bool:
        return self.cancellation_registry.cancel(job_id)

    def get_history(self, acting_user_id: str, limit: int, next_token: Optional[str] = None) -> UploadHistoryPageResponse:
        limit = max(1, min(limit, config.settings.history_max_page_size))
        records, token = self.history_repository.find_by_user(acting_user_id, limit, next_token)
        items = [UploadHistoryResponse.model_validate(record) for record in records]
        return UploadHistoryPageResponse(items=items, count=len(items), next_token=token)

    def _check_file_count(self, uploads: List[UploadedFile]) -> None:
        if not uploads:
            raise ValidationException("At least one file is required")
        if len(uploads) > config.settings.max_files_per_job:
            raise ValidationException(
                f"Too many files ({len(uploads)}); the maximum per request is {config.settings.max_files_per_job}"
            )

    @staticmethod
    def _failed_result(upload: UploadedFile, index: int, total_files: int, message: str) -> ProcessingResult:
        result = ProcessingResult(file_name=upload.file_name, file_index=index, total_files=total_files)
        result.add_error(0, message)
        return result
