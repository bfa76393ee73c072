"""
Record type metadata.
Describes the target tables a bulk upload can populate.
"""
from typing import Dict, List, Optional


class TableColumn:
    """One column of a supported record type."""

    def __init__(
        self,
        column_name: str,
        data_type: str = "string",
        is_required: bool = False,
        is_unique: bool = False,
        max_length: Optional[int] = None,
        default_value: Optional[str] = None,
        description: Optional[str] = None,
        allowed_values: Optional[List[str]] = None
    ):
        self.column_name = column_name
        self.data_type = data_type
        self.is_required = is_required
        self.is_unique = is_unique
        self.max_length = max_length
        self.default_value = default_value
        self.description = description
        self.allowed_values = allowed_values

    def __repr__(self):
        return f"TableColumn(column_name={self.column_name}, data_type={self.data_type})"


class SupportedTable:
    """A record type the table detector can recognise."""

    def __init__(
        self,
        table_name: str,
        display_name: str,
        description: str,
        primary_key_column: str,
        required_columns: List[str],
        columns: List[TableColumn],
        supports_update: bool = False
    ):
        self.table_name = table_name
        self.display_name = display_name
        self.description = description
        self.primary_key_column = primary_key_column
        self.required_columns = required_columns
        self.columns = columns
        self.supports_update = supports_update

    def column(self, name: str) -> Optional[TableColumn]:
        for column in self.columns:
            if column.column_name == name:
                return column
        return None

    def __repr__(self):
        return f"SupportedTable(table_name={self.table_name}, columns={len(self.columns)})"


class DetectedTable:
    """Result of table detection for one file."""

    def __init__(
        self,
        record_type: str,
        confidence: float,
        detected_columns: List[str],
        column_mappings: Optional[Dict[str, str]] = None
    ):
        self.record_type = record_type
        self.confidence = confidence
        self.detected_columns = detected_columns
        self.column_mappings = column_mappings or {}

    def __repr__(self):
        return f"DetectedTable(record_type={self.record_type}, confidence={self.confidence:.2f})"
