"""
File Queue Service.
Accepts a batch of files for one job and drains them strictly in submission order,
one file at a time, in a background task that outlives the originating request.
"""
import asyncio
import logging
import threading
from datetime import datetime
from typing import Dict, List
from src.core import config
from src.core.exceptions import (
    JobCancelledException,
    JobConflictException,
    JobNotFoundException,
    PersistenceUnavailableException,
    StructuralError
)
from src.models.dto.bulk_upload_dto import QueueStatusResponse
from src.models.dto.progress_dto import ProgressUpdateEvent
from src.models.processing_result import ProcessingResult
from src.models.upload_job import FileQueue, JobStatus, QueuedFile, QueuedFileStatus, UploadedFile
from src.repositories.job_status_repository import JobStatusRepository
from src.services.bulk_processing_service import progress_percentage
from src.services.job_cancellation_service import CancellationToken, JobCancellationRegistry
from src.services.progress_service import ProgressPublisher
from src.services.upload_pipeline import UploadPipeline

logger = logging.getLogger(__name__)


class QueuedUploadRequest:
    """Files and flags for a queued job."""

    def __init__(
        self,
        files: List[UploadedFile],
        acting_user_id: str,
        ignore_row_errors: bool = False,
        continue_on_error: bool = True
    ):
        self.files = files
        self.acting_user_id = acting_user_id
        self.ignore_row_errors = ignore_row_errors
        self.continue_on_error = continue_on_error


class FileQueueService:
    """Service owning queued jobs and their drain loops."""

    def __init__(
        self,
        pipeline: UploadPipeline = None,
        cancellation_registry: JobCancellationRegistry = None,
        publisher: ProgressPublisher = None,
        job_status_repository: JobStatusRepository = None
    ):
        self.pipeline = pipeline or UploadPipeline()
        self.cancellation_registry = cancellation_registry or JobCancellationRegistry()
        self.publisher = publisher or ProgressPublisher()
        self.job_status_repository = job_status_repository or JobStatusRepository()
        self._jobs: Dict[str, FileQueue] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._lock = threading.Lock()

    async def enqueue(self, request: QueuedUploadRequest) -> str:
        """
        Register a job and schedule its drain.

        Returns:
            The new job id

        Raises:
            PersistenceUnavailableException: If the pending job state cannot be stored
        """
        job_id = self.publisher.generate_job_id()
        files = [
            QueuedFile(file_name=f.file_name, extension=f.extension, content=f.content, file_index=index)
            for index, f in enumerate(request.files)
        ]
        queue = FileQueue(
            job_id=job_id,
            user_id=request.acting_user_id,
            files=files,
            ignore_row_errors=request.ignore_row_errors,
            continue_on_error=request.continue_on_error
        )

        token = self.cancellation_registry.create_if_absent(job_id)
        if token is None:
            raise JobConflictException(f"Job '{job_id}' is already running")
        with self._lock:
            self._jobs[job_id] = queue

        try:
            await asyncio.to_thread(self.job_status_repository.save, queue)
        except PersistenceUnavailableException:
            self.cancellation_registry.remove(job_id, token)
            with self._lock:
                self._jobs.pop(job_id, None)
            raise

        task = asyncio.create_task(self._drain(queue, token))
        with self._lock:
            self._tasks[job_id] = task
        logger.info("Queued job %s with %d files for user %s", job_id, len(files), request.acting_user_id)
        return job_id

    def get_status(self, job_id: str) -> QueueStatusResponse:
        """
        Current state of a job, from memory or the job status table.

        Raises:
            JobNotFoundException: If the job is unknown
        """
        with self._lock:
            queue = self._jobs.get(job_id)
        if queue is None:
            queue = self.job_status_repository.get_by_id(job_id)
        if queue is None:
            raise JobNotFoundException(f"Job '{job_id}' not found")
        return QueueStatusResponse.from_queue(queue)

    def cancel(self, job_id: str) -> bool:
        return self.cancellation_registry.cancel(job_id)

    async def wait(self, job_id: str) -> None:
        """Wait until the job's drain loop has finished."""
        with self._lock:
            task = self._tasks.get(job_id)
        if task is not None:
            await task

    async def shutdown(self) -> None:
        with self._lock:
            tasks = dict(self._tasks)
        for job_id, task in tasks.items():
            if not task.done():
                self.cancellation_registry.cancel(job_id)
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)

    async def _drain(self, queue: FileQueue, token: CancellationToken) -> None:
        job_id = queue.job_id
        if token.is_cancelled:
            self._finish_remaining(queue, QueuedFileStatus.CANCELLED)
            queue.status = JobStatus.CANCELLED
            queue.completed_at = datetime.utcnow()
            self.cancellation_registry.remove(job_id, token)
            logger.info("Job %s cancelled before it started", job_id)
            await self._finish(queue, failed_unexpectedly=False)
            return

        queue.status = JobStatus.PROCESSING
        queue.started_at = datetime.utcnow()
        self.publisher.publish_started(job_id, job_type=queue.kind.value, total_files=queue.total_files)
        logger.info("Draining job %s", job_id)
        failed_unexpectedly = False

        try:
            await self._persist(queue)
            for queued_file in queue.files:
                token.raise_if_cancelled()
                await self._process_file(queue, queued_file, token)

                if queued_file.status == QueuedFileStatus.FAILED and not queue.continue_on_error:
                    self._finish_remaining(queue, QueuedFileStatus.SKIPPED)
                    queue.status = JobStatus.FAILED
                    queue.error_message = f"Processing stopped after '{queued_file.file_name}' failed"
                    break
                await asyncio.sleep(0)
            else:
                queue.status = JobStatus.COMPLETED
        except JobCancelledException:
            self._finish_remaining(queue, QueuedFileStatus.CANCELLED)
            queue.status = JobStatus.CANCELLED
            logger.info("Job %s cancelled", job_id)
        except PersistenceUnavailableException as e:
            logger.error("Job %s stopped, record store unavailable: %s", job_id, e.message)
            failed_unexpectedly = True
            self._finish_remaining(queue, QueuedFileStatus.SKIPPED)
            queue.status = JobStatus.FAILED
            queue.error_message = "The storage service became unavailable while processing the job"
        except Exception:
            logger.exception("Job %s failed unexpectedly", job_id)
            failed_unexpectedly = True
            for queued_file in queue.files:
                if queued_file.status == QueuedFileStatus.PROCESSING:
                    queued_file.status = QueuedFileStatus.FAILED
                    queued_file.completed_at = datetime.utcnow()
                    queued_file.release()
            self._finish_remaining(queue, QueuedFileStatus.SKIPPED)
            queue.status = JobStatus.FAILED
            queue.error_message = "An unexpected error occurred while processing the job"
        finally:
            queue.completed_at = datetime.utcnow()
            self.cancellation_registry.remove(job_id, token)

        await self._finish(queue, failed_unexpectedly)

    async def _finish(self, queue: FileQueue, failed_unexpectedly: bool) -> None:
        job_id = queue.job_id
        await self._persist(queue)
        if failed_unexpectedly:
            self.publisher.publish_error(job_id, queue.error_message)
        else:
            self.publisher.publish_completed(
                job_id,
                success=queue.status == JobStatus.COMPLETED and queue.count(QueuedFileStatus.FAILED) == 0,
                message=self._summary(queue),
                data=QueueStatusResponse.from_queue(queue),
                started_at=queue.started_at
            )
        logger.info("Job %s finished with status %s", job_id, queue.status.value)
        self._schedule_eviction(job_id)

    async def _process_file(self, queue: FileQueue, queued_file: QueuedFile, token: CancellationToken) -> None:
        queued_file.status = QueuedFileStatus.PROCESSING
        queued_file.started_at = datetime.utcnow()
        self._publish_file_update(queue, queued_file, f"Processing file {queued_file.file_index + 1} of {queue.total_files}", done=False)
        await self._persist(queue)

        upload = UploadedFile(queued_file.file_name, queued_file.content, queued_file.extension)
        try:
            result = await self.pipeline.run(
                upload,
                queue.user_id,
                queue.ignore_row_errors,
                job_id=queue.job_id,
                file_index=queued_file.file_index,
                total_files=queue.total_files,
                cancellation=token
            )
            self._apply_result(queued_file, result)
            queued_file.status = (
                QueuedFileStatus.FAILED if result.history_status == "Failed" else QueuedFileStatus.COMPLETED
            )
        except StructuralError as e:
            queued_file.errors = [e.message]
            queued_file.status = QueuedFileStatus.FAILED
        except JobCancelledException as e:
            if e.result is not None:
                self._apply_result(queued_file, e.result)
            queued_file.status = QueuedFileStatus.CANCELLED
            queued_file.completed_at = datetime.utcnow()
            queued_file.release()
            raise
        except PersistenceUnavailableException as e:
            if e.result is not None:
                self._apply_result(queued_file, e.result)
            else:
                queued_file.errors = [e.message]
            queued_file.status = QueuedFileStatus.FAILED
            queued_file.completed_at = datetime.utcnow()
            queued_file.release()
            raise

        queued_file.completed_at = datetime.utcnow()
        queued_file.release()
        await self._persist(queue)
        self._publish_file_update(queue, queued_file, f"Finished {queued_file.file_name}", done=True)
        logger.info("Job %s file %s %s", queue.job_id, queued_file.file_name, queued_file.status.value)

    def _publish_file_update(self, queue: FileQueue, queued_file: QueuedFile, operation: str, done: bool) -> None:
        finished = queue.count(QueuedFileStatus.COMPLETED) + queue.count(QueuedFileStatus.FAILED)
        self.publisher.publish_update(ProgressUpdateEvent(
            job_id=queue.job_id,
            progress_percentage=progress_percentage(1 if done else 0, 1, queued_file.file_index, queue.total_files),
            status=queued_file.status.value,
            current_operation=operation,
            processed_records=queued_file.processed_records + queued_file.failed_records,
            total_records=queued_file.total_records,
            current_file_name=queued_file.file_name,
            processed_files=finished,
            total_files=queue.total_files,
            errors=queued_file.errors[:5] or None
        ))

    async def _persist(self, queue: FileQueue) -> None:
        try:
            await asyncio.to_thread(self.job_status_repository.save, queue)
        except PersistenceUnavailableException as e:
            logger.error("Could not persist state of job %s: %s", queue.job_id, e.message)

    def _schedule_eviction(self, job_id: str) -> None:
        delay = config.settings.queue_retention_minutes * 60
        asyncio.get_running_loop().call_later(delay, self._evict, job_id)

    def _evict(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)
            self._tasks.pop(job_id, None)
        logger.debug("Evicted job %s from memory", job_id)

    @staticmethod
    def _apply_result(queued_file: QueuedFile, result: ProcessingResult) -> None:
        queued_file.record_type = result.record_type
        queued_file.total_records = result.total_records
        queued_file.processed_records = result.processed_records
        queued_file.failed_records = result.failed_records
        queued_file.errors = [f"Row {e.row_number}: {e.message}" for e in result.errors]

    @staticmethod
    def _finish_remaining(queue: FileQueue, status: QueuedFileStatus) -> None:
        for queued_file in queue.files:
            if queued_file.status in (QueuedFileStatus.QUEUED, QueuedFileStatus.PROCESSING):
                queued_file.status = status
                queued_file.release()

    @staticmethod
    def _summary(queue: FileQueue) -> str:
        completed = queue.count(QueuedFileStatus.COMPLETED)
        failed = queue.count(QueuedFileStatus.FAILED)
        if queue.status == JobStatus.CANCELLED:
            return f"Job cancelled after {completed} of {queue.total_files} files"
        return f"Processed {completed} of {queue.total_files} files ({failed} failed)"
