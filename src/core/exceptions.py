"""
Custom exceptions for the Bulk Ingestion API.
Provides specific error types for the ingestion failure taxonomy.
"""


class BulkUploadException(Exception):
    """Base exception for all application errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class StructuralError(BulkUploadException):
    """Raised when a file cannot be processed at all. Aborts the file, no rows processed."""
    pass


class ParseError(StructuralError):
    """Raised when a file is malformed for its declared format."""
    pass


class TableDetectionError(StructuralError):
    """Raised when the record type of a file cannot be determined."""
    pass


class FileValidationError(StructuralError):
    """Raised when a parsed file fails file-level validation."""
    pass


class ValidationException(BulkUploadException):
    """Raised when request input validation fails."""
    pass


class UnsupportedFileTypeException(BulkUploadException):
    """Raised when a file extension is not accepted."""
    pass


class FileTooLargeException(BulkUploadException):
    """Raised when an uploaded file exceeds the configured size limit."""
    pass


class RowValidationError(BulkUploadException):
    """Raised when a single row is rejected."""
    def __init__(self, message: str, row_number: int = 0):
        self.row_number = row_number
        super().__init__(message)


class JobCancelledException(BulkUploadException):
    """Raised at a cancellation checkpoint once a job has been cancelled."""
    def __init__(self, job_id: str = None, result=None):
        self.job_id = job_id
        self.result = result
        super().__init__(f"Job '{job_id}' was cancelled" if job_id else "Job was cancelled")


class PersistenceUnavailableException(BulkUploadException):
    """Raised when a backing store cannot be reached."""
    def __init__(self, message: str, result=None):
        self.result = result
        super().__init__(message)


class DynamoDBException(PersistenceUnavailableException):
    """Raised when DynamoDB operation fails."""
    pass


class JobNotFoundException(BulkUploadException):
    """Raised when a job id is not known."""
    pass


class RecordTypeNotFoundException(BulkUploadException):
    """Raised when a record type is not supported."""
    pass


class JobConflictException(BulkUploadException):
    """Raised when a job id is already in use by a running job."""
    pass
