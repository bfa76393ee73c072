"""
Bulk Processing Service.
Validates and persists the parsed rows of one file, tracking per-row outcomes,
honouring cooperative cancellation and publishing progress updates.
"""
import asyncio
import logging
import time
from typing import List, Optional
from src.core import config
from src.core.exceptions import JobCancelledException, PersistenceUnavailableException, RowValidationError
from src.models.dto.progress_dto import ProgressUpdateEvent
from src.models.processing_result import ProcessingResult
from src.repositories.record_repository import RecordRepository
from src.services.job_cancellation_service import CancellationToken
from src.services.mappers import MapperRegistry, RecordMapper, RowValidator
from src.services.parsers import ParsedRow
from src.services.progress_service import ProgressPublisher

logger = logging.getLogger(__name__)


def progress_percentage(done: int, total: int, file_index: int, total_files: int) -> float:
    """Overall job percentage with each file owning an equal slice."""
    total_files = max(total_files, 1)
    per_file = 100.0 / total_files
    within = per_file * (done / total) if total else per_file
    return round(min(file_index * per_file + within, 100.0), 2)


class BulkProcessingService:
    """Service for persisting parsed rows of a detected record type."""

    def __init__(
        self,
        record_repository: RecordRepository = None,
        mapper_registry: MapperRegistry = None,
        publisher: ProgressPublisher = None
    ):
        self.record_repository = record_repository or RecordRepository()
        self.mapper_registry = mapper_registry or MapperRegistry()
        self.publisher = publisher or ProgressPublisher()

    async def process(
        self,
        rows: List[ParsedRow],
        record_type: str,
        extension: str,
        acting_user_id: str,
        ignore_row_errors: bool,
        job_id: Optional[str] = None,
        file_name: Optional[str] = None,
        file_index: int = 0,
        total_files: int = 1,
        cancellation: Optional[CancellationToken] = None
    ) -> ProcessingResult:
        """
        Process rows in file order.

        Args:
            rows: Parsed rows keyed by table column names
            record_type: Detected record type
            extension: Source file extension
            acting_user_id: User performing the upload
            ignore_row_errors: Continue past failed rows when True, otherwise stop at the first failure
            job_id: When given, progress updates are published for this job
            file_name: Source file name, attached to row errors
            file_index: Zero-based position of the file within its job
            total_files: Number of files in the job
            cancellation: Token checked before each row

        Returns:
            ProcessingResult with processed + failed == total

        Raises:
            JobCancelledException: If the token is cancelled; carries the partial result
            PersistenceUnavailableException: If the record store is unavailable; carries the partial result
        """
        mapper = self.mapper_registry.get(record_type)
        validator = RowValidator(mapper)
        result = ProcessingResult(
            file_name=file_name,
            record_type=record_type,
            file_index=file_index,
            total_files=total_files,
            total_records=len(rows)
        )
        batch_size = max(config.settings.progress_batch_size, 1)
        started = time.monotonic()
        logger.info("Processing %d %s rows from %s (%s)", len(rows), record_type, file_name or "upload", extension)

        try:
            for index, row in enumerate(rows):
                row_number = index + 1
                if cancellation is not None:
                    cancellation.raise_if_cancelled()

                error = await self._process_row(mapper, validator, row, row_number, acting_user_id)
                if error is None:
                    result.processed_records += 1
                else:
                    result.failed_records += 1
                    result.add_error(row_number, error)
                    if not ignore_row_errors:
                        remaining = len(rows) - row_number
                        result.failed_records += remaining
                        logger.info("Stopped %s at row %d, %d rows not attempted", file_name, row_number, remaining)
                        break

                if job_id and row_number % batch_size == 0 and row_number < len(rows):
                    self._publish_progress(job_id, result)
        except JobCancelledException as e:
            result.cancelled = True
            result.processing_time_ms = int((time.monotonic() - started) * 1000)
            logger.info("Processing of %s cancelled after %d rows", file_name, result.processed_records)
            raise JobCancelledException(job_id or e.job_id, result) from e
        except PersistenceUnavailableException as e:
            attempted = result.processed_records + result.failed_records
            result.failed_records += len(rows) - attempted
            result.add_error(attempted + 1, f"Record store unavailable: {e.message}")
            result.processing_time_ms = int((time.monotonic() - started) * 1000)
            logger.error("Processing of %s aborted at row %d: %s", file_name, attempted + 1, e.message)
            result.aborted = True
            e.result = result
            raise

        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        if job_id:
            self._publish_progress(job_id, result)
        logger.info(
            "Finished %s: %d processed, %d failed of %d",
            file_name, result.processed_records, result.failed_records, result.total_records
        )
        return result

    async def _process_row(
        self,
        mapper: RecordMapper,
        validator: RowValidator,
        row: ParsedRow,
        row_number: int,
        acting_user_id: str
    ) -> Optional[str]:
        """Returns an error message for a rejected row, None when the row was stored."""
        outcome = validator.validate(row, row_number)
        if not outcome.is_valid:
            return outcome.message

        try:
            await asyncio.to_thread(self._save_row, mapper, row, acting_user_id)
        except RowValidationError as e:
            return e.message
        return None

    def _save_row(self, mapper: RecordMapper, row: ParsedRow, acting_user_id: str) -> None:
        item = mapper.to_item(row, acting_user_id)
        self.record_repository.save(mapper.record_type, mapper.natural_key(item), item)

    def _publish_progress(self, job_id: str, result: ProcessingResult) -> None:
        done = result.processed_records + result.failed_records
        recent_errors = [f"Row {e.row_number}: {e.message}" for e in result.errors[-5:]]
        self.publisher.publish_update(ProgressUpdateEvent(
            job_id=job_id,
            progress_percentage=progress_percentage(done, result.total_records, result.file_index, result.total_files),
            status="Processing",
            current_operation=f"Processing {result.record_type} records",
            processed_records=done,
            total_records=result.total_records,
            current_file_name=result.file_name,
            processed_files=result.file_index,
            total_files=result.total_files,
            errors=recent_errors or None
        ))
