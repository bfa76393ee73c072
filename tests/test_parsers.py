import io
import json
import pytest
import openpyxl
from src.core.exceptions import ParseError, UnsupportedFileTypeException
from src.services.parsers import (
    CsvParser,
    ExcelParser,
    FileFormat,
    JsonParser,
    ParserFactory,
    XmlParser,
    normalize_extension
)


def build_workbook(rows):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestFileFormat:
    def test_from_extension(self):
        assert FileFormat.from_extension(".csv") == FileFormat.CSV
        assert FileFormat.from_extension(".JSON") == FileFormat.JSON
        assert FileFormat.from_extension("data.xml") == FileFormat.XML
        assert FileFormat.from_extension(".xlsx") == FileFormat.EXCEL
        assert FileFormat.from_extension(".xls") == FileFormat.EXCEL

    def test_unsupported_extension(self):
        with pytest.raises(UnsupportedFileTypeException):
            FileFormat.from_extension(".txt")

    def test_normalize_extension(self):
        assert normalize_extension("Users.CSV") == ".csv"
        assert normalize_extension(".json") == ".json"
        assert normalize_extension("noextension") == ""

    def test_factory_selects_parser(self):
        assert isinstance(ParserFactory.get_parser(FileFormat.CSV), CsvParser)
        assert isinstance(ParserFactory.for_extension(".json"), JsonParser)
        assert isinstance(ParserFactory.for_extension(".xml"), XmlParser)
        assert isinstance(ParserFactory.for_extension(".xls"), ExcelParser)


class TestCsvParser:
    def test_parse_rows_in_order(self):
        content = b"Name,Email\nAlice,a@x.com\nBob,b@x.com\n"
        rows = CsvParser().parse(content, ".csv")
        assert rows == [
            {"Name": "Alice", "Email": "a@x.com"},
            {"Name": "Bob", "Email": "b@x.com"}
        ]

    def test_strips_values_and_skips_blank_rows(self):
        content = "\ufeffName , Email\n  Alice ,a@x.com\n,\n\nBob,b@x.com\n".encode("utf-8")
        headers, rows = CsvParser().read(content, ".csv")
        assert headers == ["Name", "Email"]
        assert len(rows) == 2
        assert rows[0]["Name"] == "Alice"

    def test_short_rows_are_padded(self):
        rows = CsvParser().parse(b"A,B,C\n1,2\n", ".csv")
        assert rows == [{"A": "1", "B": "2", "C": ""}]

    def test_quoted_fields(self):
        rows = CsvParser().parse(b'Name,Note\n"Doe, John","said ""hi"""\n', ".csv")
        assert rows[0] == {"Name": "Doe, John", "Note": 'said "hi"'}

    def test_unterminated_quote_raises(self):
        with pytest.raises(ParseError):
            CsvParser().parse(b'Name,Email\n"Alice,a@x.com\n', ".csv")

    def test_invalid_encoding_raises(self):
        with pytest.raises(ParseError):
            CsvParser().parse(b"Name\n\xff\xfe\xfa\n", ".csv")

    def test_empty_file(self):
        assert CsvParser().read(b"", ".csv") == ([], [])


class TestJsonParser:
    def test_parse_array_of_objects(self):
        content = json.dumps([
            {"Name": "Alice", "Age": 30, "Active": True},
            {"Name": "Bob", "Age": None, "Active": False}
        ]).encode()
        headers, rows = JsonParser().read(content, ".json")
        assert headers == ["Name", "Age", "Active"]
        assert rows[0] == {"Name": "Alice", "Age": "30", "Active": "true"}
        assert rows[1] == {"Name": "Bob", "Age": "", "Active": "false"}

    def test_keys_come_from_first_object(self):
        content = json.dumps([{"A": "1"}, {"A": "2", "B": "ignored"}]).encode()
        rows = JsonParser().parse(content, ".json")
        assert rows == [{"A": "1"}, {"A": "2"}]

    def test_invalid_json_raises(self):
        with pytest.raises(ParseError):
            JsonParser().parse(b'[{"Name": "Alice"', ".json")

    def test_non_array_raises(self):
        with pytest.raises(ParseError):
            JsonParser().parse(b'{"Name": "Alice"}', ".json")


class TestXmlParser:
    def test_parse_child_elements(self):
        content = (
            b"<Users>"
            b"<User><FirstName>John</FirstName><Email>j@x.com</Email></User>"
            b"<User><FirstName>Jane</FirstName><Email>jane@x.com</Email></User>"
            b"</Users>"
        )
        headers, rows = XmlParser().read(content, ".xml")
        assert headers == ["FirstName", "Email"]
        assert rows[1] == {"FirstName": "Jane", "Email": "jane@x.com"}

    def test_attributes_become_fields(self):
        content = b'<Apps><App id="7"><Name>CRM</Name></App></Apps>'
        rows = XmlParser().parse(content, ".xml")
        assert rows == [{"id": "7", "Name": "CRM"}]

    def test_invalid_markup_raises(self):
        with pytest.raises(ParseError):
            XmlParser().parse(b"<Users><User><FirstName>John</User></Users>", ".xml")


class TestExcelParser:
    def test_parse_first_sheet(self):
        content = build_workbook([["Name", "Count"], ["Alice", 3], [None, None], ["Bob", 4.0]])
        headers, rows = ExcelParser().read(content, ".xlsx")
        assert headers == ["Name", "Count"]
        assert rows == [{"Name": "Alice", "Count": "3"}, {"Name": "Bob", "Count": "4"}]

    def test_corrupt_workbook_raises(self):
        with pytest.raises(ParseError):
            ExcelParser().parse(b"this is not a zip container", ".xlsx")

    def test_corrupt_legacy_workbook_raises(self):
        with pytest.raises(ParseError):
            ExcelParser().parse(b"not an xls file at all", ".xls")
