"""
Upload Pipeline.
Shared detect, validate, process and history steps used by every upload strategy.
"""
import asyncio
import json
import logging
from typing import List, Optional, Tuple
from src.core.exceptions import (
    FileValidationError,
    JobCancelledException,
    PersistenceUnavailableException,
    StructuralError
)
from src.models.processing_result import ProcessingResult
from src.models.table_info import DetectedTable
from src.models.upload_history import UploadHistoryRecord
from src.models.upload_job import UploadedFile
from src.repositories.upload_history_repository import UploadHistoryRepository
from src.services.bulk_processing_service import BulkProcessingService
from src.services.job_cancellation_service import CancellationToken
from src.services.parsers import ParsedRow, ParserFactory
from src.services.table_detection_service import TableDetectionService
from src.services.validation_service import ValidationService

logger = logging.getLogger(__name__)

# Upper bound on row errors serialised into a history record.
MAX_HISTORY_ERRORS = 100


class UploadPipeline:
    """Runs one uploaded file through detection, validation and processing."""

    def __init__(
        self,
        detection_service: TableDetectionService = None,
        validation_service: ValidationService = None,
        processing_service: BulkProcessingService = None,
        history_repository: UploadHistoryRepository = None
    ):
        self.detection_service = detection_service or TableDetectionService()
        self.validation_service = validation_service or ValidationService(self.detection_service)
        self.processing_service = processing_service or BulkProcessingService()
        self.history_repository = history_repository or UploadHistoryRepository()

    def prepare(self, upload: UploadedFile) -> Tuple[DetectedTable, List[ParsedRow]]:
        """
        Parse, detect and validate a file.

        Returns:
            Tuple of (DetectedTable, rows keyed by table column names)

        Raises:
            StructuralError: If the file cannot be processed at all
        """
        parser = ParserFactory.for_extension(upload.extension)
        headers, rows = parser.read(upload.content, upload.extension)
        detected = self.detection_service.detect_from_headers(headers)
        rows = self.detection_service.remap_rows(rows, detected)

        is_valid, error_message = self.validation_service.validate(rows, detected.record_type, upload.extension)
        if not is_valid:
            raise FileValidationError(error_message)
        return detected, rows

    async def load(self, upload: UploadedFile, acting_user_id: str) -> Tuple[DetectedTable, List[ParsedRow]]:
        """
        Prepare a file off the event loop, writing a failed history record if it cannot be processed.

        Raises:
            StructuralError: If the file cannot be processed at all
        """
        try:
            return await asyncio.to_thread(self.prepare, upload)
        except StructuralError as e:
            await asyncio.to_thread(self.record_structural_failure, acting_user_id, upload.file_name, e)
            raise

    async def process_prepared(
        self,
        upload: UploadedFile,
        detected: DetectedTable,
        rows: List[ParsedRow],
        acting_user_id: str,
        ignore_row_errors: bool,
        job_id: Optional[str] = None,
        file_index: int = 0,
        total_files: int = 1,
        cancellation: Optional[CancellationToken] = None
    ) -> ProcessingResult:
        """Process prepared rows and write the history record for the attempt."""
        try:
            result = await self.processing_service.process(
                rows,
                detected.record_type,
                upload.extension,
                acting_user_id,
                ignore_row_errors,
                job_id=job_id,
                file_name=upload.file_name,
                file_index=file_index,
                total_files=total_files,
                cancellation=cancellation
            )
        except (JobCancelledException, PersistenceUnavailableException) as e:
            if e.result is not None:
                await self._record_partial(acting_user_id, e.result)
            raise

        await asyncio.to_thread(self.record_result, acting_user_id, result)
        return result

    async def run(
        self,
        upload: UploadedFile,
        acting_user_id: str,
        ignore_row_errors: bool,
        job_id: Optional[str] = None,
        file_index: int = 0,
        total_files: int = 1,
        cancellation: Optional[CancellationToken] = None
    ) -> ProcessingResult:
        """
        Run the full pipeline for one file.

        Raises:
            StructuralError: If the file cannot be processed; a failed history record is written
            JobCancelledException: If cancelled mid-file; carries the partial result
            PersistenceUnavailableException: If a backing store is unavailable; a failed history
                record is written when the history table is still reachable
        """
        detected, rows = await self.load(upload, acting_user_id)

        return await self.process_prepared(
            upload,
            detected,
            rows,
            acting_user_id,
            ignore_row_errors,
            job_id=job_id,
            file_index=file_index,
            total_files=total_files,
            cancellation=cancellation
        )

    async def _record_partial(self, acting_user_id: str, result: ProcessingResult) -> None:
        try:
            await asyncio.to_thread(self.record_result, acting_user_id, result)
        except PersistenceUnavailableException as e:
            logger.error("Could not write history for %s: %s", result.file_name, e.message)

    def record_result(self, acting_user_id: str, result: ProcessingResult) -> None:
        error_details = None
        if result.errors:
            error_details = json.dumps([
                {"rowNumber": e.row_number, "message": e.message} for e in result.errors[:MAX_HISTORY_ERRORS]
            ])
        self.history_repository.create(UploadHistoryRecord(
            user_id=acting_user_id,
            record_type=result.record_type or "Unknown",
            file_name=result.file_name or "",
            total_records=result.total_records,
            processed_records=result.processed_records,
            failed_records=result.failed_records,
            status=result.history_status,
            processing_time_ms=result.processing_time_ms,
            error_details=error_details
        ))

    def record_structural_failure(self, acting_user_id: str, file_name: str, error: StructuralError) -> None:
        logger.warning("File %s failed before processing: %s", file_name, error.message)
        self.history_repository.create(UploadHistoryRecord(
            user_id=acting_user_id,
            record_type="Unknown",
            file_name=file_name,
            total_records=0,
            processed_records=0,
            failed_records=0,
            status="Failed",
            error_details=json.dumps([{"rowNumber": 0, "message": error.message}])
        ))
