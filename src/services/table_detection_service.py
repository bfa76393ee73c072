"""
Table Detection Service.
Identifies which record type an uploaded file holds by scoring its headers
against the columns of every supported table.
"""
import logging
from typing import Dict, Iterable, List, Optional
from src.core import config
from src.core.exceptions import TableDetectionError
from src.models.table_info import DetectedTable, SupportedTable, TableColumn
from src.services.parsers import ParsedRow, ParserFactory

logger = logging.getLogger(__name__)

DATA_SOURCE_TYPES = [
    "MicrosoftSqlServer", "MySql", "PostgreSql", "MongoDb", "Redis", "Oracle", "MariaDb",
    "Sqlite", "Cassandra", "ElasticSearch", "RestApi", "GraphQL", "SoapApi", "ODataApi",
    "WebSocket", "CsvFile", "JsonFile", "XmlFile", "ExcelFile", "ParquetFile", "YamlFile",
    "TextFile", "AzureBlobStorage", "AmazonS3", "GoogleCloudStorage", "RabbitMQ",
    "ApacheKafka", "AzureServiceBus",
]

USER_ROLES = ["Admin", "User", "PlatformAdmin"]

SIMILARITY_THRESHOLD = 0.8

SUPPORTED_TABLES: List[SupportedTable] = [
    SupportedTable(
        table_name="Users",
        display_name="Users",
        description="User accounts for the system",
        primary_key_column="UserId",
        required_columns=["FirstName", "LastName", "Email"],
        supports_update=True,
        columns=[
            TableColumn("UserId", "guid", is_unique=True, description="Auto-generated if not provided"),
            TableColumn("FirstName", is_required=True, max_length=50),
            TableColumn("LastName", is_required=True, max_length=50),
            TableColumn("Username", is_unique=True, max_length=50, description="Derived from Email if not provided"),
            TableColumn("PasswordHash", max_length=255, description="System managed - use Password field instead"),
            TableColumn("Password", max_length=255, description="Plain text password (will be hashed into PasswordHash)"),
            TableColumn("Email", is_required=True, is_unique=True, max_length=255),
            TableColumn("PhoneNumber", max_length=20),
            TableColumn("IsActive", "boolean", default_value="true"),
            TableColumn("Role", default_value="User", max_length=50, allowed_values=USER_ROLES),
            TableColumn("LastLogin", "datetime", description="System managed"),
            TableColumn("CreatedAt", "datetime", description="Auto-generated if not provided"),
            TableColumn("UpdatedAt", "datetime", description="Auto-generated if not provided"),
        ]
    ),
    SupportedTable(
        table_name="Applications",
        display_name="Applications",
        description="Applications managed by the system",
        primary_key_column="ApplicationId",
        required_columns=["ApplicationName", "ApplicationDataSourceType"],
        supports_update=True,
        columns=[
            TableColumn("ApplicationId", "guid", is_unique=True, description="Auto-generated if not provided"),
            TableColumn("ApplicationName", is_required=True, is_unique=True, max_length=100),
            TableColumn("ApplicationDescription", max_length=500),
            TableColumn("ApplicationDataSourceType", "enum", is_required=True,
                        description="Data source type enum value", allowed_values=DATA_SOURCE_TYPES),
            TableColumn("CreatedAt", "datetime", description="Auto-generated if not provided"),
            TableColumn("UpdatedAt", "datetime", description="Auto-generated if not provided"),
        ]
    ),
    SupportedTable(
        table_name="UserApplications",
        display_name="User Applications",
        description="Links between users and application connections",
        primary_key_column="UserApplicationId",
        required_columns=["UserId", "ApplicationId", "ApplicationConnectionId"],
        columns=[
            TableColumn("UserApplicationId", "guid", is_unique=True, description="Auto-generated if not provided"),
            TableColumn("UserId", "guid", is_required=True, description="User ID (GUID)"),
            TableColumn("ApplicationId", "guid", is_required=True, description="Application ID (GUID)"),
            TableColumn("ApplicationConnectionId", "guid", is_required=True, description="Application Connection ID (GUID)"),
            TableColumn("CreatedAt", "datetime", description="Auto-generated if not provided"),
        ]
    ),
    SupportedTable(
        table_name="TemporaryUsers",
        display_name="Temporary Users",
        description="Pending user registrations awaiting verification",
        primary_key_column="TemporaryUserId",
        required_columns=["FirstName", "LastName", "Email"],
        columns=[
            TableColumn("TemporaryUserId", "guid", is_unique=True, description="Auto-generated if not provided"),
            TableColumn("FirstName", is_required=True, max_length=255),
            TableColumn("LastName", is_required=True, max_length=255),
            TableColumn("Email", is_required=True, is_unique=True, max_length=255),
            TableColumn("Username", is_unique=True, max_length=255),
            TableColumn("PasswordHash", max_length=255, description="System managed - use Password field instead"),
            TableColumn("Password", max_length=255, description="Plain text password (will be hashed into PasswordHash)"),
            TableColumn("PhoneNumber", max_length=255),
            TableColumn("CreatedAt", "datetime", description="Auto-generated if not provided"),
            TableColumn("Token", max_length=255, description="System managed verification token"),
        ]
    ),
]


def normalize_column_name(name: str) -> str:
    return name.lower().replace(" ", "").replace("_", "").replace("-", "")


def levenshtein_distance(s1: str, s2: str) -> int:
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(s1: str, s2: str) -> float:
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    return 1.0 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


class TableDetectionService:
    """Service for detecting the record type of uploaded files."""

    def __init__(self, tables: Optional[List[SupportedTable]] = None):
        self._tables = {table.table_name.lower(): table for table in (tables or SUPPORTED_TABLES)}

    def detect(self, content: bytes, extension: str) -> DetectedTable:
        """
        Detect the record type of a file from its headers.

        Args:
            content: Raw file bytes
            extension: File extension (e.g. ".csv")

        Returns:
            DetectedTable with the best scoring record type and header mappings

        Raises:
            ParseError: If the file is malformed
            TableDetectionError: If no record type scores above the threshold
        """
        return self.detect_from_headers(ParserFactory.for_extension(extension).headers(content, extension))

    def detect_from_headers(self, headers: List[str]) -> DetectedTable:
        """Detect the record type from already parsed column headers."""
        headers = [h for h in headers if h]
        if not headers:
            raise TableDetectionError("Could not read any column headers from the file")

        normalized = [normalize_column_name(h) for h in headers]
        best_table, best_score = None, 0.0
        for table in self._tables.values():
            score = self._score(normalized, table)
            logger.debug("Detection score for %s: %.3f", table.table_name, score)
            if score > best_score:
                best_table, best_score = table, score

        threshold = config.settings.detection_min_confidence
        if best_table is None or best_score < threshold:
            logger.warning("Unable to detect record type for headers %s (best score %.2f)", headers, best_score)
            raise TableDetectionError(
                "Unable to determine the record type of the file. "
                "Please ensure the column headers match one of the supported templates."
            )

        logger.info("Detected record type %s with confidence %.2f", best_table.table_name, best_score)
        return DetectedTable(
            record_type=best_table.table_name,
            confidence=best_score,
            detected_columns=headers,
            column_mappings=self.create_column_mappings(headers, best_table)
        )

    def supported_tables(self) -> List[SupportedTable]:
        return list(self._tables.values())

    def get_table(self, record_type: str) -> Optional[SupportedTable]:
        return self._tables.get((record_type or "").lower())

    def is_supported(self, record_type: str) -> bool:
        return self.get_table(record_type) is not None

    def create_column_mappings(self, headers: Iterable[str], table: SupportedTable) -> Dict[str, str]:
        """Map file headers onto table column names by normalised or fuzzy match."""
        columns = {normalize_column_name(c.column_name): c.column_name for c in table.columns}
        mappings = {}
        for header in headers:
            key = normalize_column_name(header)
            if key in columns:
                mappings[header] = columns[key]
                continue
            best_match, best_score = None, 0.0
            for candidate in columns:
                score = similarity(key, candidate)
                if score > best_score and score > SIMILARITY_THRESHOLD:
                    best_match, best_score = candidate, score
            if best_match:
                mappings[header] = columns[best_match]
        return mappings

    @staticmethod
    def remap_rows(rows: List[ParsedRow], detected: DetectedTable) -> List[ParsedRow]:
        """Rename row keys from file headers to table column names."""
        mappings = detected.column_mappings
        return [{mappings.get(key, key): value for key, value in row.items()} for row in rows]

    def _score(self, headers: List[str], table: SupportedTable) -> float:
        columns = [normalize_column_name(c.column_name) for c in table.columns]
        required = [normalize_column_name(c) for c in table.required_columns]

        matched = [h for h in headers if h in columns]
        matched_required = len({h for h in matched if h in required})

        score = len(matched) / len(columns) if matched else 0.0
        if required and matched_required < len(required):
            score *= matched_required / len(required)
        if len(headers) == len(columns):
            score += 0.1
        return min(score, 1.0)
