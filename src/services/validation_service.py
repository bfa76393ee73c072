"""
Validation Service.
File-level checks run before any row of an upload is processed.
"""
import logging
from typing import List, Optional, Tuple
from src.core import config
from src.core.exceptions import FileTooLargeException, UnsupportedFileTypeException
from src.services.parsers import ParsedRow, normalize_extension
from src.services.table_detection_service import TableDetectionService

logger = logging.getLogger(__name__)


class ValidationService:
    """Service for upload and file-level validation."""

    def __init__(self, detection_service: Optional[TableDetectionService] = None):
        self.detection_service = detection_service or TableDetectionService()

    def validate_upload(self, file_name: str, size: int) -> str:
        """
        Check an uploaded file before it is parsed.

        Args:
            file_name: Original file name
            size: Payload size in bytes

        Returns:
            Normalised file extension

        Raises:
            UnsupportedFileTypeException: If the extension is not accepted
            FileTooLargeException: If the payload exceeds the size limit
        """
        extension = normalize_extension(file_name or "")
        if extension not in config.settings.allowed_extensions:
            allowed = ", ".join(config.settings.allowed_extensions)
            raise UnsupportedFileTypeException(
                f"File '{file_name}' has an unsupported extension. Allowed: {allowed}"
            )

        if size > config.settings.max_file_size_bytes:
            raise FileTooLargeException(
                f"File size ({size / (1024 * 1024):.2f}MB) exceeds maximum allowed size "
                f"of {config.settings.max_file_size_mb}MB"
            )
        return extension

    def validate(self, rows: List[ParsedRow], record_type: str, extension: str) -> Tuple[bool, str]:
        """
        Validate parsed rows at the file level.

        Returns:
            (is_valid, error_message); the message is empty when valid
        """
        table = self.detection_service.get_table(record_type)
        if table is None:
            return False, f"Record type '{record_type}' is not supported"

        if not rows:
            return False, "File contains no data rows"

        if len(rows) > config.settings.max_rows_per_file:
            return False, (
                f"File contains {len(rows)} rows which exceeds the maximum of "
                f"{config.settings.max_rows_per_file}"
            )

        columns = set()
        for row in rows:
            columns.update(row.keys())
        missing = [c for c in table.required_columns if c not in columns]
        if missing:
            return False, f"Missing required columns: {', '.join(missing)}"

        logger.debug("File level validation passed for %s (%s, %d rows)", record_type, extension, len(rows))
        return True, ""
