"""
Record mappers.
Row-level validation rules and item construction for each supported record type.
"""
import logging
import re
import secrets
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
import bcrypt
from src.core import config
from src.core.exceptions import RecordTypeNotFoundException
from src.models.processing_result import ValidationOutcome
from src.models.table_info import SupportedTable, TableColumn
from src.services.parsers import ParsedRow
from src.services.table_detection_service import DATA_SOURCE_TYPES, SUPPORTED_TABLES, USER_ROLES

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

TRUE_VALUES = {"true", "yes", "1", "y"}
FALSE_VALUES = {"false", "no", "0", "n"}


def parse_boolean(value: str, default: bool = False) -> bool:
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return default


def is_guid(value: str) -> bool:
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def hash_password(password: str) -> str:
    rounds = config.settings.password_hash_rounds
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


class RecordMapper(ABC):
    """Validation and persistence mapping for one record type."""

    record_type: str = ""

    def __init__(self):
        self.table: SupportedTable = next(t for t in SUPPORTED_TABLES if t.table_name == self.record_type)

    @abstractmethod
    def validate_fields(self, row: ParsedRow, outcome: ValidationOutcome) -> None:
        """Apply record-specific rules, adding errors to the outcome."""

    @abstractmethod
    def build_item(self, row: ParsedRow, acting_user_id: str, now: str) -> dict:
        """Build the stored attributes for a valid row."""

    @abstractmethod
    def natural_key(self, item: dict) -> str:
        """Key that identifies a duplicate of this record."""

    @abstractmethod
    def example_rows(self) -> List[Dict[str, str]]:
        pass

    def validate_row(self, row: ParsedRow, row_number: int) -> ValidationOutcome:
        outcome = ValidationOutcome()
        for column in self.table.columns:
            value = self.value(row, column.column_name)
            if column.is_required and not value:
                outcome.add_error(f"{column.column_name} is required")
            elif value and column.max_length and len(value) > column.max_length:
                outcome.add_error(f"{column.column_name} cannot exceed {column.max_length} characters")
        self.validate_fields(row, outcome)
        if not outcome.is_valid:
            logger.debug("Row %d rejected for %s: %s", row_number, self.record_type, outcome.message)
        return outcome

    def to_item(self, row: ParsedRow, acting_user_id: str) -> dict:
        now = datetime.utcnow().isoformat()
        item = self.build_item(row, acting_user_id, now)
        return {key: value for key, value in item.items() if value not in (None, "")}

    def unique_values(self, row: ParsedRow) -> Dict[str, str]:
        """Values of the unique columns of a row, normalised for duplicate checks."""
        values = {}
        for column in self.table.columns:
            value = self.value(row, column.column_name)
            if column.is_unique and value:
                values[column.column_name] = value.lower()
        return values

    def template_columns(self) -> List[TableColumn]:
        return [c for c in self.table.columns if not (c.description or "").startswith("System managed")]

    @staticmethod
    def value(row: ParsedRow, column_name: str) -> str:
        return (row.get(column_name) or "").strip()


class UsersMapper(RecordMapper):
    record_type = "Users"

    def validate_fields(self, row: ParsedRow, outcome: ValidationOutcome) -> None:
        email = self.value(row, "Email")
        role = self.value(row, "Role")
        user_id = self.value(row, "UserId")

        if email and not EMAIL_PATTERN.match(email):
            outcome.add_error("Invalid email format")
        if role and role.lower() not in {r.lower() for r in USER_ROLES}:
            outcome.add_error("Invalid role. Must be Admin, User, or PlatformAdmin")
        if user_id and not is_guid(user_id):
            outcome.add_error("UserId must be a valid GUID")

    def build_item(self, row: ParsedRow, acting_user_id: str, now: str) -> dict:
        email = self.value(row, "Email")
        role = self.value(row, "Role") or "User"
        password = self.value(row, "Password") or secrets.token_urlsafe(12)
        return {
            'UserId': self.value(row, "UserId") or str(uuid.uuid4()),
            'FirstName': self.value(row, "FirstName"),
            'LastName': self.value(row, "LastName"),
            'Username': self.value(row, "Username") or email.split("@")[0],
            'Email': email,
            'PhoneNumber': self.value(row, "PhoneNumber"),
            'Role': next((r for r in USER_ROLES if r.lower() == role.lower()), "User"),
            'IsActive': parse_boolean(self.value(row, "IsActive"), True),
            'PasswordHash': hash_password(password),
            'CreatedAt': self.value(row, "CreatedAt") or now,
            'UpdatedAt': now,
            'CreatedBy': acting_user_id
        }

    def natural_key(self, item: dict) -> str:
        return item['Email'].lower()

    def example_rows(self) -> List[Dict[str, str]]:
        return [
            {"FirstName": "John", "LastName": "Doe", "Username": "john.doe", "Email": "john.doe@company.com",
             "PhoneNumber": "555-0123", "Role": "User", "IsActive": "true", "Password": "ChangeMe123!"},
            {"FirstName": "Jane", "LastName": "Smith", "Username": "jane.smith", "Email": "jane.smith@company.com",
             "PhoneNumber": "555-0124", "Role": "Admin", "IsActive": "true", "Password": "ChangeMe123!"},
        ]


class ApplicationsMapper(RecordMapper):
    record_type = "Applications"

    def validate_fields(self, row: ParsedRow, outcome: ValidationOutcome) -> None:
        source_type = self.value(row, "ApplicationDataSourceType")
        application_id = self.value(row, "ApplicationId")

        if source_type and self._canonical_source_type(source_type) is None:
            outcome.add_error(f"Invalid ApplicationDataSourceType '{source_type}'")
        if application_id and not is_guid(application_id):
            outcome.add_error("ApplicationId must be a valid GUID")

    def build_item(self, row: ParsedRow, acting_user_id: str, now: str) -> dict:
        return {
            'ApplicationId': self.value(row, "ApplicationId") or str(uuid.uuid4()),
            'ApplicationName': self.value(row, "ApplicationName"),
            'ApplicationDescription': self.value(row, "ApplicationDescription"),
            'ApplicationDataSourceType': self._canonical_source_type(self.value(row, "ApplicationDataSourceType")),
            'CreatedAt': self.value(row, "CreatedAt") or now,
            'UpdatedAt': now,
            'CreatedBy': acting_user_id
        }

    def natural_key(self, item: dict) -> str:
        return item['ApplicationName'].lower()

    def example_rows(self) -> List[Dict[str, str]]:
        return [
            {"ApplicationName": "Customer Database", "ApplicationDescription": "Primary CRM data store",
             "ApplicationDataSourceType": "MicrosoftSqlServer"},
            {"ApplicationName": "Orders API", "ApplicationDescription": "Order management REST service",
             "ApplicationDataSourceType": "RestApi"},
        ]

    @staticmethod
    def _canonical_source_type(value: str) -> Optional[str]:
        return next((t for t in DATA_SOURCE_TYPES if t.lower() == value.lower()), None)


class UserApplicationsMapper(RecordMapper):
    record_type = "UserApplications"

    REFERENCE_COLUMNS = ("UserId", "ApplicationId", "ApplicationConnectionId")

    def validate_fields(self, row: ParsedRow, outcome: ValidationOutcome) -> None:
        for column in self.REFERENCE_COLUMNS + ("UserApplicationId",):
            value = self.value(row, column)
            if value and not is_guid(value):
                outcome.add_error(f"{column} must be a valid GUID")

    def build_item(self, row: ParsedRow, acting_user_id: str, now: str) -> dict:
        return {
            'UserApplicationId': self.value(row, "UserApplicationId") or str(uuid.uuid4()),
            'UserId': self.value(row, "UserId").lower(),
            'ApplicationId': self.value(row, "ApplicationId").lower(),
            'ApplicationConnectionId': self.value(row, "ApplicationConnectionId").lower(),
            'CreatedAt': self.value(row, "CreatedAt") or now,
            'CreatedBy': acting_user_id
        }

    def natural_key(self, item: dict) -> str:
        return "#".join(item[column] for column in self.REFERENCE_COLUMNS)

    def unique_values(self, row: ParsedRow) -> Dict[str, str]:
        values = super().unique_values(row)
        values["UserId+ApplicationId+ApplicationConnectionId"] = "#".join(
            self.value(row, column).lower() for column in self.REFERENCE_COLUMNS
        )
        return values

    def example_rows(self) -> List[Dict[str, str]]:
        return [
            {"UserId": "3f2504e0-4f89-11d3-9a0c-0305e82c3301",
             "ApplicationId": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
             "ApplicationConnectionId": "16fd2706-8baf-433b-82eb-8c7fada847da"},
        ]


class TemporaryUsersMapper(RecordMapper):
    record_type = "TemporaryUsers"

    def validate_fields(self, row: ParsedRow, outcome: ValidationOutcome) -> None:
        email = self.value(row, "Email")
        if email and not EMAIL_PATTERN.match(email):
            outcome.add_error("Invalid email format")

    def build_item(self, row: ParsedRow, acting_user_id: str, now: str) -> dict:
        email = self.value(row, "Email")
        password = self.value(row, "Password")
        return {
            'TemporaryUserId': self.value(row, "TemporaryUserId") or str(uuid.uuid4()),
            'FirstName': self.value(row, "FirstName"),
            'LastName': self.value(row, "LastName"),
            'Email': email,
            'Username': self.value(row, "Username") or email.split("@")[0],
            'PhoneNumber': self.value(row, "PhoneNumber"),
            'PasswordHash': hash_password(password) if password else None,
            'Token': secrets.token_urlsafe(32),
            'CreatedAt': self.value(row, "CreatedAt") or now,
            'CreatedBy': acting_user_id
        }

    def natural_key(self, item: dict) -> str:
        return item['Email'].lower()

    def example_rows(self) -> List[Dict[str, str]]:
        return [
            {"FirstName": "Alex", "LastName": "Taylor", "Email": "alex.taylor@company.com",
             "Username": "alex.taylor", "PhoneNumber": "555-0199"},
        ]


class MapperRegistry:
    """Lookup of record mappers by record type name."""

    def __init__(self, mappers: Optional[List[RecordMapper]] = None):
        mappers = mappers or [UsersMapper(), ApplicationsMapper(), UserApplicationsMapper(), TemporaryUsersMapper()]
        self._mappers = {mapper.record_type.lower(): mapper for mapper in mappers}

    def get(self, record_type: str) -> RecordMapper:
        mapper = self._mappers.get((record_type or "").lower())
        if mapper is None:
            raise RecordTypeNotFoundException(f"Record type '{record_type}' is not supported")
        return mapper

    def record_types(self) -> List[str]:
        return [mapper.record_type for mapper in self._mappers.values()]


class RowValidator:
    """Validates the rows of one file, including duplicates within the file."""

    def __init__(self, mapper: RecordMapper):
        self.mapper = mapper
        self._seen: Set[Tuple[str, str]] = set()

    def validate(self, row: ParsedRow, row_number: int) -> ValidationOutcome:
        outcome = self.mapper.validate_row(row, row_number)
        if not outcome.is_valid:
            return outcome

        keys = [(column, value) for column, value in self.mapper.unique_values(row).items()]
        duplicates = [column for column, value in keys if (column, value) in self._seen]
        for column in duplicates:
            outcome.add_error(f"Duplicate {column} within file")
        if outcome.is_valid:
            self._seen.update(keys)
        return outcome
