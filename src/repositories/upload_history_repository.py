"""
Upload History Repository for DynamoDB operations.
Write-once audit rows, one per processed file, queried per user.
"""
import base64
import json
import logging
from datetime import datetime
from typing import List, Optional, Tuple
import boto3
from botocore.exceptions import ClientError
from src.core import config
from src.core.exceptions import DynamoDBException, ValidationException
from src.models.upload_history import UploadHistoryRecord

logger = logging.getLogger(__name__)

USER_INDEX_NAME = 'UserUploadsIndex'


class UploadHistoryRepository:
    """Repository for upload history DynamoDB operations."""

    def __init__(self):
        self.dynamodb = boto3.resource('dynamodb', region_name=config.settings.aws_region)
        self.table = self.dynamodb.Table(config.settings.upload_history_table_name)

    def create(self, record: UploadHistoryRecord) -> None:
        """
        Create a history record.

        Raises:
            DynamoDBException: If create operation fails
        """
        item = {
            'upload_id': record.upload_id,
            'user_id': record.user_id,
            'record_type': record.record_type,
            'file_name': record.file_name,
            'total_records': record.total_records,
            'processed_records': record.processed_records,
            'failed_records': record.failed_records,
            'status': record.status,
            'processing_time_ms': record.processing_time_ms,
            'uploaded_at': record.uploaded_at.isoformat()
        }
        if record.error_details:
            item['error_details'] = record.error_details

        try:
            self.table.put_item(Item=item)
            logger.info("Recorded %s upload history for %s", record.status, record.file_name)
        except ClientError as e:
            raise DynamoDBException(f"Failed to create upload history: {str(e)}") from e

    def find_by_user(
        self,
        user_id: str,
        limit: int = 10,
        next_token: Optional[str] = None
    ) -> Tuple[List[UploadHistoryRecord], Optional[str]]:
        """
        Retrieve a user's uploads, newest first.

        Args:
            user_id: Acting user id
            limit: Maximum number of items to return
            next_token: Base64-encoded pagination token from previous request

        Returns:
            Tuple of (list of UploadHistoryRecord, next_token or None)

        Raises:
            DynamoDBException: If query fails
            ValidationException: If next_token is invalid
        """
        query_kwargs = {
            'IndexName': USER_INDEX_NAME,
            'KeyConditionExpression': 'user_id = :uid',
            'ExpressionAttributeValues': {':uid': user_id},
            'Limit': limit,
            'ScanIndexForward': False
        }

        if next_token:
            try:
                query_kwargs['ExclusiveStartKey'] = json.loads(base64.b64decode(next_token))
            except (ValueError, TypeError) as e:
                raise ValidationException("Invalid pagination token") from e

        try:
            response = self.table.query(**query_kwargs)
        except ClientError as e:
            raise DynamoDBException(f"Failed to query upload history: {str(e)}") from e

        records = [self._item_to_record(item) for item in response.get('Items', [])]

        token = None
        if 'LastEvaluatedKey' in response:
            token = base64.b64encode(json.dumps(response['LastEvaluatedKey']).encode()).decode()

        return records, token

    def _item_to_record(self, item: dict) -> UploadHistoryRecord:
        return UploadHistoryRecord(
            upload_id=item['upload_id'],
            user_id=item['user_id'],
            record_type=item['record_type'],
            file_name=item['file_name'],
            total_records=int(item.get('total_records', 0)),
            processed_records=int(item.get('processed_records', 0)),
            failed_records=int(item.get('failed_records', 0)),
            status=item['status'],
            processing_time_ms=int(item.get('processing_time_ms', 0)),
            error_details=item.get('error_details'),
            uploaded_at=datetime.fromisoformat(item['uploaded_at'])
        )
