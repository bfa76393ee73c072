"""
Progress event schemas pushed over the real-time channel.
Each event is serialised with camelCase field names under its event name.
"""
from datetime import datetime
from typing import Any, ClassVar, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProgressEvent(BaseModel):
    """Common base for all progress events of a job."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_name: ClassVar[str] = ""

    job_id: str

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class JobStartedEvent(ProgressEvent):
    event_name: ClassVar[str] = "JobStarted"

    job_type: str = "Progress"
    total_files: int = 1
    estimated_total_records: int = 0
    start_time: datetime = Field(default_factory=datetime.utcnow)


class ProgressUpdateEvent(ProgressEvent):
    event_name: ClassVar[str] = "ProgressUpdate"

    progress_percentage: float = 0.0
    status: str = "Processing"
    current_operation: Optional[str] = None
    processed_records: int = 0
    total_records: int = 0
    current_file_name: Optional[str] = None
    processed_files: int = 0
    total_files: int = 1
    errors: Optional[List[str]] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class JobCompletedEvent(ProgressEvent):
    event_name: ClassVar[str] = "JobCompleted"

    success: bool
    message: str = ""
    data: Optional[Any] = None
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    total_duration: float = Field(default=0.0, description="Seconds since the job started")


class JobErrorEvent(ProgressEvent):
    event_name: ClassVar[str] = "JobError"

    error: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
