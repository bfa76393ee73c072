"""
Upload history domain model.
Durable, write-once record of one file or job completion.
"""
import uuid
from datetime import datetime
from typing import Optional


class UploadHistoryRecord:
    """Domain model for upload history rows."""

    def __init__(
        self,
        user_id: str,
        record_type: str,
        file_name: str,
        total_records: int,
        processed_records: int,
        failed_records: int,
        status: str,
        processing_time_ms: int = 0,
        error_details: Optional[str] = None,
        uploaded_at: Optional[datetime] = None,
        upload_id: Optional[str] = None
    ):
        self.upload_id = upload_id or str(uuid.uuid4())
        self.user_id = user_id
        self.record_type = record_type
        self.file_name = file_name
        self.total_records = total_records
        self.processed_records = processed_records
        self.failed_records = failed_records
        self.status = status
        self.processing_time_ms = processing_time_ms
        self.error_details = error_details
        self.uploaded_at = uploaded_at or datetime.utcnow()

    def __repr__(self):
        return f"UploadHistoryRecord(upload_id={self.upload_id}, file_name={self.file_name}, status={self.status})"
