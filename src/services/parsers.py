"""
Format parsers for uploaded files.
Convert raw file bytes into an ordered list of row dictionaries keyed by header.
"""
import csv
import io
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Tuple
import xml.etree.ElementTree as ET
import openpyxl
import xlrd
from src.core.exceptions import ParseError, UnsupportedFileTypeException

logger = logging.getLogger(__name__)

ParsedRow = Dict[str, str]


class FileFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    XML = "xml"
    EXCEL = "excel"

    @classmethod
    def from_extension(cls, extension: str) -> "FileFormat":
        ext = normalize_extension(extension)
        if ext not in _EXTENSION_FORMATS:
            raise UnsupportedFileTypeException(f"File extension '{ext or extension}' is not supported")
        return _EXTENSION_FORMATS[ext]


_EXTENSION_FORMATS = {
    ".csv": FileFormat.CSV,
    ".json": FileFormat.JSON,
    ".xml": FileFormat.XML,
    ".xlsx": FileFormat.EXCEL,
    ".xls": FileFormat.EXCEL,
}


def normalize_extension(value: str) -> str:
    """Return the lower-case extension (with leading dot) of a file name or extension."""
    if not value:
        return ""
    if value.startswith(".") and value.count(".") == 1:
        return value.lower()
    return os.path.splitext(value)[1].lower()


def _to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value).strip()


def _build_rows(headers: List[str], records: List[List[str]]) -> List[ParsedRow]:
    rows = []
    for values in records:
        if not any(v for v in values):
            continue
        padded = list(values) + [""] * (len(headers) - len(values))
        rows.append({header: padded[i] for i, header in enumerate(headers) if header})
    return rows


class FileParser(ABC):
    """Common contract for all format parsers."""

    file_format: FileFormat

    @abstractmethod
    def read(self, content: bytes, extension: str) -> Tuple[List[str], List[ParsedRow]]:
        """
        Read headers and rows from raw file content.

        Raises:
            ParseError: If the content is malformed for this format
        """

    def parse(self, content: bytes, extension: str) -> List[ParsedRow]:
        headers, rows = self.read(content, extension)
        logger.info("Parsed %s file: %d columns, %d rows", self.file_format.value, len(headers), len(rows))
        return rows

    def headers(self, content: bytes, extension: str) -> List[str]:
        headers, _ = self.read(content, extension)
        return headers

    @staticmethod
    def _decode(content: bytes) -> str:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError("File must be UTF-8 encoded") from e


class CsvParser(FileParser):
    """Delimited text, first row is the header."""

    file_format = FileFormat.CSV

    def read(self, content: bytes, extension: str) -> Tuple[List[str], List[ParsedRow]]:
        text = self._decode(content)
        try:
            records = [[cell.strip() for cell in record] for record in csv.reader(io.StringIO(text), strict=True)]
        except csv.Error as e:
            raise ParseError(f"Malformed CSV: {str(e)}") from e

        if not records:
            return [], []
        headers = records[0]
        return headers, _build_rows(headers, records[1:])


class JsonParser(FileParser):
    """Top-level array of flat objects; the first object defines the columns."""

    file_format = FileFormat.JSON

    def read(self, content: bytes, extension: str) -> Tuple[List[str], List[ParsedRow]]:
        text = self._decode(content)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e.msg} (line {e.lineno})") from e

        if not isinstance(document, list):
            raise ParseError("JSON file must contain an array of records")

        objects = [element for element in document if isinstance(element, dict)]
        if not objects:
            return [], []

        headers = [str(key) for key in objects[0].keys()]
        records = [[_to_text(obj.get(header)) for header in headers] for obj in objects]
        return headers, _build_rows(headers, records)


class XmlParser(FileParser):
    """Root element holding one element per record; fields are child elements or attributes."""

    file_format = FileFormat.XML

    def read(self, content: bytes, extension: str) -> Tuple[List[str], List[ParsedRow]]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise ParseError(f"Invalid XML: {str(e)}") from e

        elements = list(root)
        if not elements:
            return [], []

        first = elements[0]
        headers = list(first.attrib.keys()) + [child.tag for child in first]
        records = []
        for element in elements:
            values = {child.tag: _to_text(child.text) for child in element}
            values.update({key: _to_text(value) for key, value in element.attrib.items()})
            records.append([values.get(header, "") for header in headers])
        return headers, _build_rows(headers, records)


class ExcelParser(FileParser):
    """First worksheet of a workbook, first row is the header."""

    file_format = FileFormat.EXCEL

    def read(self, content: bytes, extension: str) -> Tuple[List[str], List[ParsedRow]]:
        if normalize_extension(extension) == ".xls":
            records = self._read_xls(content)
        else:
            records = self._read_xlsx(content)

        if not records:
            return [], []
        headers = [h if h else f"Column{i + 1}" for i, h in enumerate(records[0])]
        return headers, _build_rows(headers, records[1:])

    def _read_xlsx(self, content: bytes) -> List[List[str]]:
        try:
            workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            raise ParseError(f"Corrupt or unreadable spreadsheet: {str(e)}") from e

        try:
            sheet = workbook.worksheets[0]
            return [[_to_text(value) for value in row] for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    def _read_xls(self, content: bytes) -> List[List[str]]:
        try:
            workbook = xlrd.open_workbook(file_contents=content)
        except Exception as e:
            raise ParseError(f"Corrupt or unreadable spreadsheet: {str(e)}") from e

        sheet = workbook.sheet_by_index(0)
        records = []
        for index in range(sheet.nrows):
            row = []
            for cell in sheet.row(index):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(_to_text(xlrd.xldate.xldate_as_datetime(cell.value, workbook.datemode)))
                else:
                    row.append(_to_text(cell.value))
            records.append(row)
        return records


class ParserFactory:
    """Selects the parser for a file format."""

    _parsers = {
        FileFormat.CSV: CsvParser,
        FileFormat.JSON: JsonParser,
        FileFormat.XML: XmlParser,
        FileFormat.EXCEL: ExcelParser,
    }

    @classmethod
    def get_parser(cls, file_format: FileFormat) -> FileParser:
        return cls._parsers[file_format]()

    @classmethod
    def for_extension(cls, extension: str) -> FileParser:
        return cls.get_parser(FileFormat.from_extension(extension))
