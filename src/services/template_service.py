"""
Template Service.
Builds downloadable spreadsheet templates for the supported record types.
"""
import io
import logging
from typing import List
from openpyxl import Workbook
from openpyxl.styles import Font
from src.core.exceptions import RecordTypeNotFoundException
from src.models.dto.bulk_upload_dto import SupportedTableResponse
from src.services.mappers import MapperRegistry
from src.services.table_detection_service import TableDetectionService

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class TemplateService:
    """Service for record type discovery and template generation."""

    def __init__(self, detection_service: TableDetectionService = None, mapper_registry: MapperRegistry = None):
        self.detection_service = detection_service or TableDetectionService()
        self.mapper_registry = mapper_registry or MapperRegistry()

    def supported_tables(self) -> List[SupportedTableResponse]:
        return [SupportedTableResponse.model_validate(t) for t in self.detection_service.supported_tables()]

    def generate(self, record_type: str) -> bytes:
        """
        Build an .xlsx template with a data sheet and a column reference sheet.

        Raises:
            RecordTypeNotFoundException: If the record type is not supported
        """
        table = self.detection_service.get_table(record_type)
        if table is None:
            raise RecordTypeNotFoundException(f"Record type '{record_type}' is not supported")
        mapper = self.mapper_registry.get(table.table_name)
        columns = mapper.template_columns()

        workbook = Workbook()
        data_sheet = workbook.active
        data_sheet.title = table.table_name
        data_sheet.append([c.column_name for c in columns])
        for cell in data_sheet[1]:
            cell.font = Font(bold=True)
        for example in mapper.example_rows():
            data_sheet.append([example.get(c.column_name, "") for c in columns])

        info_sheet = workbook.create_sheet("Columns")
        info_sheet.append(["Column", "Type", "Required", "Max Length", "Default", "Allowed Values", "Description"])
        for cell in info_sheet[1]:
            cell.font = Font(bold=True)
        for c in columns:
            info_sheet.append([
                c.column_name,
                c.data_type,
                "Yes" if c.column_name in table.required_columns else "No",
                c.max_length or "",
                c.default_value or "",
                ", ".join(c.allowed_values or []),
                c.description or ""
            ])

        buffer = io.BytesIO()
        workbook.save(buffer)
        logger.info("Generated %s template", table.table_name)
        return buffer.getvalue()

    def template_file_name(self, record_type: str) -> str:
        table = self.detection_service.get_table(record_type)
        name = table.table_name if table else record_type
        return f"{name}_template.xlsx"
