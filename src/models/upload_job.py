"""
Upload job domain models.
Represents a bulk ingestion job and the per-file state owned by its drain loop.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

# Upper bound on error messages persisted per file.
MAX_STORED_ERRORS = 100


class JobKind(str, Enum):
    DIRECT = "Direct"
    MULTIPLE = "Multiple"
    PROGRESS = "Progress"
    QUEUED = "Queued"


class JobStatus(str, Enum):
    QUEUED = "Queued"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class UploadedFile:
    """A file received in an upload request, read once into memory."""

    def __init__(self, file_name: str, content: bytes, extension: str = ""):
        self.file_name = file_name
        self.content = content
        self.extension = extension

    @property
    def size(self) -> int:
        return len(self.content or b"")

    def __repr__(self):
        return f"UploadedFile(file_name={self.file_name}, size={self.size})"


class QueuedFileStatus(str, Enum):
    QUEUED = "Queued"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    SKIPPED = "Skipped"


class QueuedFile:
    """One file's progress state within a queued job."""

    def __init__(
        self,
        file_name: str,
        extension: str,
        content: Optional[bytes],
        file_index: int,
        queued_at: Optional[datetime] = None
    ):
        self.file_name = file_name
        self.extension = extension
        self.content = content
        self.file_index = file_index
        self.status = QueuedFileStatus.QUEUED
        self.record_type: Optional[str] = None
        self.processed_records = 0
        self.failed_records = 0
        self.total_records = 0
        self.errors: List[str] = []
        self.queued_at = queued_at or datetime.utcnow()
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    @property
    def processing_time_ms(self) -> int:
        if not self.started_at or not self.completed_at:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def release(self) -> None:
        """Drop the raw payload once the file has been processed."""
        self.content = None

    def to_item(self) -> dict:
        item = {
            'file_name': self.file_name,
            'file_index': self.file_index,
            'status': self.status.value,
            'processed_records': self.processed_records,
            'failed_records': self.failed_records,
            'total_records': self.total_records,
            'errors': self.errors[:MAX_STORED_ERRORS],
            'queued_at': self.queued_at.isoformat(),
            'processing_time_ms': self.processing_time_ms
        }
        if self.record_type:
            item['record_type'] = self.record_type
        if self.started_at:
            item['started_at'] = self.started_at.isoformat()
        if self.completed_at:
            item['completed_at'] = self.completed_at.isoformat()
        return item

    def __repr__(self):
        return f"QueuedFile(file_name={self.file_name}, index={self.file_index}, status={self.status.value})"


class FileQueue:
    """A queued job: an ordered batch of files drained one at a time."""

    def __init__(
        self,
        job_id: str,
        user_id: str,
        files: List[QueuedFile],
        ignore_row_errors: bool = False,
        continue_on_error: bool = True,
        created_at: Optional[datetime] = None
    ):
        self.job_id = job_id
        self.kind = JobKind.QUEUED
        self.user_id = user_id
        self.files = files
        self.ignore_row_errors = ignore_row_errors
        self.continue_on_error = continue_on_error
        self.status = JobStatus.QUEUED
        self.created_at = created_at or datetime.utcnow()
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.error_message: Optional[str] = None

    @property
    def total_files(self) -> int:
        return len(self.files)

    def count(self, status: QueuedFileStatus) -> int:
        return sum(1 for f in self.files if f.status == status)

    @property
    def processing_file(self) -> Optional[str]:
        for queued_file in self.files:
            if queued_file.status == QueuedFileStatus.PROCESSING:
                return queued_file.file_name
        return None

    def __repr__(self):
        return f"FileQueue(job_id={self.job_id}, files={len(self.files)}, status={self.status.value})"
