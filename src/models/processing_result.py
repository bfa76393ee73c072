"""
Processing result domain models.
Per-row verdicts and the per-file outcome returned by the bulk processor.
"""
from datetime import datetime
from typing import List, Optional


class ValidationOutcome:
    """Verdict for a single parsed row."""

    def __init__(self, is_valid: bool = True, errors: Optional[List[str]] = None):
        self.is_valid = is_valid
        self.errors = errors or []

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    @property
    def message(self) -> str:
        return "; ".join(self.errors)

    def __repr__(self):
        return f"ValidationOutcome(is_valid={self.is_valid}, errors={len(self.errors)})"


class RowError:
    """A row-level failure attributed to a file and row number."""

    def __init__(self, file_name: Optional[str], row_number: int, message: str):
        self.file_name = file_name
        self.row_number = row_number
        self.message = message

    def __repr__(self):
        return f"RowError(file_name={self.file_name}, row_number={self.row_number}, message={self.message})"


class ProcessingResult:
    """Outcome of processing one file."""

    def __init__(
        self,
        file_name: Optional[str] = None,
        record_type: Optional[str] = None,
        file_index: int = 0,
        total_files: int = 1,
        total_records: int = 0
    ):
        self.file_name = file_name
        self.record_type = record_type
        self.file_index = file_index
        self.total_files = total_files
        self.total_records = total_records
        self.processed_records = 0
        self.failed_records = 0
        self.errors: List[RowError] = []
        self.processed_at = datetime.utcnow()
        self.processing_time_ms = 0
        self.cancelled = False
        self.aborted = False

    def add_error(self, row_number: int, message: str) -> None:
        self.errors.append(RowError(self.file_name, row_number, message))

    @property
    def history_status(self) -> str:
        if self.cancelled:
            return "Cancelled"
        if self.aborted:
            return "Failed"
        if self.failed_records == 0 and self.processed_records == self.total_records:
            return "Success"
        if self.processed_records == 0:
            return "Failed"
        return "Partial"

    def __repr__(self):
        return (
            f"ProcessingResult(file_name={self.file_name}, processed={self.processed_records}, "
            f"failed={self.failed_records}, total={self.total_records})"
        )
