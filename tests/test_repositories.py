"""
Tests for the DynamoDB repositories.
"""
import base64
import json
from datetime import datetime, timedelta
import pytest
from src.core import config
from src.core.exceptions import DynamoDBException, PersistenceUnavailableException, RowValidationError, ValidationException
from src.models.upload_history import UploadHistoryRecord
from src.models.upload_job import FileQueue, JobStatus, QueuedFile, QueuedFileStatus
from src.repositories.job_status_repository import JobStatusRepository
from src.repositories.record_repository import RecordRepository
from src.repositories.upload_history_repository import UploadHistoryRepository


class TestRecordRepository:
    """Test suite for RecordRepository."""

    def test_save_and_find(self, aws_tables):
        repo = RecordRepository()

        repo.save("Users", "ann@company.com", {"Email": "ann@company.com", "FirstName": "Ann"})

        item = repo.find_by_key("Users", "ann@company.com")
        assert item["PK"] == "USERS#ann@company.com"
        assert item["record_type"] == "Users"
        assert item["FirstName"] == "Ann"

    def test_save_existing_key_is_row_error(self, aws_tables):
        repo = RecordRepository()
        repo.save("Users", "ann@company.com", {"Email": "ann@company.com"})

        with pytest.raises(RowValidationError) as exc_info:
            repo.save("Users", "ann@company.com", {"Email": "ann@company.com"})

        assert "already exists" in exc_info.value.message

    def test_same_key_different_type(self, aws_tables):
        repo = RecordRepository()
        repo.save("Users", "ann@company.com", {"Email": "ann@company.com"})
        repo.save("TemporaryUsers", "ann@company.com", {"Email": "ann@company.com"})

        assert repo.count_by_type("Users") == 1
        assert repo.count_by_type("TemporaryUsers") == 1
        assert repo.count_by_type("Applications") == 0

    def test_find_missing(self, aws_tables):
        assert RecordRepository().find_by_key("Users", "nobody") is None

    def test_missing_table_raises(self, aws_tables, monkeypatch):
        monkeypatch.setattr(config.settings, "records_table_name", "Missing-table")
        repo = RecordRepository()

        with pytest.raises(DynamoDBException) as exc_info:
            repo.save("Users", "ann@company.com", {"Email": "ann@company.com"})

        assert isinstance(exc_info.value, PersistenceUnavailableException)


class TestUploadHistoryRepository:
    """Test suite for UploadHistoryRepository."""

    def record(self, file_name, user_id="uploader", uploaded_at=None, **kwargs):
        fields = dict(
            user_id=user_id,
            record_type="Users",
            file_name=file_name,
            total_records=3,
            processed_records=2,
            failed_records=1,
            status="Partial",
            uploaded_at=uploaded_at
        )
        fields.update(kwargs)
        return UploadHistoryRecord(**fields)

    def test_create_and_find(self, aws_tables):
        repo = UploadHistoryRepository()
        record = self.record("users.csv", error_details='[{"rowNumber": 2, "message": "bad"}]', processing_time_ms=42)

        repo.create(record)
        records, token = repo.find_by_user("uploader")

        assert token is None
        assert len(records) == 1
        found = records[0]
        assert found.upload_id == record.upload_id
        assert found.processed_records == 2
        assert found.failed_records == 1
        assert found.processing_time_ms == 42
        assert found.error_details == record.error_details
        assert found.uploaded_at == record.uploaded_at

    def test_newest_first_and_scoped_to_user(self, aws_tables):
        repo = UploadHistoryRepository()
        now = datetime.utcnow()
        repo.create(self.record("old.csv", uploaded_at=now - timedelta(minutes=5)))
        repo.create(self.record("new.csv", uploaded_at=now))
        repo.create(self.record("theirs.csv", user_id="other", uploaded_at=now))

        records, _ = repo.find_by_user("uploader")

        assert [r.file_name for r in records] == ["new.csv", "old.csv"]

    def test_pagination(self, aws_tables):
        repo = UploadHistoryRepository()
        now = datetime.utcnow()
        for i in range(3):
            repo.create(self.record(f"file{i}.csv", uploaded_at=now + timedelta(seconds=i)))

        first, token = repo.find_by_user("uploader", limit=2)
        assert [r.file_name for r in first] == ["file2.csv", "file1.csv"]
        assert token is not None
        assert json.loads(base64.b64decode(token))["user_id"] == "uploader"

        second, _ = repo.find_by_user("uploader", limit=2, next_token=token)
        assert [r.file_name for r in second] == ["file0.csv"]

    def test_invalid_token(self, aws_tables):
        with pytest.raises(ValidationException):
            UploadHistoryRepository().find_by_user("uploader", next_token="%%%")


class TestJobStatusRepository:
    """Test suite for JobStatusRepository."""

    def queue(self):
        files = [QueuedFile("a.csv", ".csv", b"x", 0), QueuedFile("b.csv", ".csv", b"y", 1)]
        return FileQueue("job_1", "uploader", files, ignore_row_errors=True, continue_on_error=False)

    def test_save_and_get(self, aws_tables):
        repo = JobStatusRepository()
        queue = self.queue()
        queue.status = JobStatus.PROCESSING
        first = queue.files[0]
        first.status = QueuedFileStatus.COMPLETED
        first.record_type = "Users"
        first.total_records = 3
        first.processed_records = 2
        first.failed_records = 1
        first.errors = ["Row 2: Invalid email format"]
        first.started_at = datetime.utcnow()
        first.completed_at = first.started_at + timedelta(milliseconds=250)

        repo.save(queue)
        loaded = repo.get_by_id("job_1")

        assert loaded.status == JobStatus.PROCESSING
        assert loaded.user_id == "uploader"
        assert loaded.created_at == queue.created_at
        assert [f.status for f in loaded.files] == [QueuedFileStatus.COMPLETED, QueuedFileStatus.QUEUED]
        assert loaded.files[0].errors == ["Row 2: Invalid email format"]
        assert loaded.files[0].processing_time_ms == 250
        assert loaded.files[0].content is None
        assert loaded.files[1].started_at is None

    def test_errors_are_capped(self, aws_tables):
        repo = JobStatusRepository()
        queue = self.queue()
        queue.files[0].errors = [f"Row {i}: bad" for i in range(1, 151)]

        repo.save(queue)

        assert len(repo.get_by_id("job_1").files[0].errors) == 100

    def test_update(self, aws_tables):
        repo = JobStatusRepository()
        repo.save(self.queue())

        repo.update("job_1", {"status": "Cancelled", "error_message": "stopped"})

        loaded = repo.get_by_id("job_1")
        assert loaded.status == JobStatus.CANCELLED
        assert loaded.error_message == "stopped"

    def test_get_missing(self, aws_tables):
        assert JobStatusRepository().get_by_id("job_missing") is None
