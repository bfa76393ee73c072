"""
Tests for upload and file level validation.
"""
import pytest
from src.core import config
from src.core.exceptions import FileTooLargeException, UnsupportedFileTypeException
from src.services.validation_service import ValidationService

ROWS = [{"FirstName": "John", "LastName": "Doe", "Email": "john@x.com"}]


class TestValidationService:
    """Test suite for ValidationService."""

    @pytest.fixture
    def service(self):
        return ValidationService()

    def test_validate_upload_returns_extension(self, service):
        assert service.validate_upload("Users.CSV", 100) == ".csv"
        assert service.validate_upload("legacy.xls", 100) == ".xls"

    def test_validate_upload_unsupported_extension(self, service):
        with pytest.raises(UnsupportedFileTypeException) as exc_info:
            service.validate_upload("notes.txt", 100)

        assert "notes.txt" in exc_info.value.message

    def test_validate_upload_too_large(self, service):
        with pytest.raises(FileTooLargeException) as exc_info:
            service.validate_upload("big.csv", config.settings.max_file_size_bytes + 1)

        assert "exceeds maximum allowed size" in exc_info.value.message

    def test_valid_rows(self, service):
        assert service.validate(ROWS, "Users", ".csv") == (True, "")

    def test_no_rows(self, service):
        assert service.validate([], "Users", ".csv") == (False, "File contains no data rows")

    def test_unsupported_record_type(self, service):
        is_valid, message = service.validate(ROWS, "Drugs", ".csv")

        assert not is_valid
        assert "Drugs" in message

    def test_missing_required_columns(self, service):
        is_valid, message = service.validate([{"FirstName": "John"}], "Users", ".csv")

        assert not is_valid
        assert message == "Missing required columns: LastName, Email"

    def test_too_many_rows(self, service, monkeypatch):
        monkeypatch.setattr(config.settings, "max_rows_per_file", 2)

        is_valid, message = service.validate(ROWS * 3, "Users", ".csv")

        assert not is_valid
        assert "exceeds the maximum of 2" in message
