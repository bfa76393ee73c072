"""
DynamoDB Repository for ingested records.
Stores one item per imported row, keyed by record type and natural key.
"""
import logging
from typing import Optional
import boto3
from botocore.exceptions import ClientError
from boto3.dynamodb.conditions import Attr
from src.core import config
from src.core.exceptions import DynamoDBException, RowValidationError

logger = logging.getLogger(__name__)


class RecordRepository:
    """Repository for DynamoDB record operations."""

    def __init__(self):
        self.dynamodb = boto3.resource('dynamodb', region_name=config.settings.aws_region)
        self.table = self.dynamodb.Table(config.settings.records_table_name)

    def save(self, record_type: str, natural_key: str, attributes: dict) -> None:
        """
        Insert a record unless one with the same natural key exists.

        Args:
            record_type: Target record type (e.g. "Users")
            natural_key: Key identifying duplicates within the record type
            attributes: Record attributes

        Raises:
            RowValidationError: If the record already exists
            DynamoDBException: If save operation fails
        """
        item = dict(attributes)
        item['PK'] = self._create_pk(record_type, natural_key)
        item['record_type'] = record_type

        try:
            self.table.put_item(Item=item, ConditionExpression='attribute_not_exists(PK)')
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                raise RowValidationError(f"{record_type} record '{natural_key}' already exists") from e
            raise DynamoDBException(f"Failed to save {record_type} record: {str(e)}") from e

    def find_by_key(self, record_type: str, natural_key: str) -> Optional[dict]:
        """
        Retrieve a record by its natural key.

        Raises:
            DynamoDBException: If query fails
        """
        try:
            response = self.table.get_item(Key={'PK': self._create_pk(record_type, natural_key)})
            return response.get('Item')
        except ClientError as e:
            raise DynamoDBException(f"Failed to get {record_type} record: {str(e)}") from e

    def count_by_type(self, record_type: str) -> int:
        try:
            kwargs = {'FilterExpression': Attr('record_type').eq(record_type), 'Select': 'COUNT'}
            total = 0
            while True:
                response = self.table.scan(**kwargs)
                total += response.get('Count', 0)
                if 'LastEvaluatedKey' not in response:
                    return total
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except ClientError as e:
            raise DynamoDBException(f"Failed to count {record_type} records: {str(e)}") from e

    def _create_pk(self, record_type: str, natural_key: str) -> str:
        return f"{record_type.upper()}#{natural_key}"
