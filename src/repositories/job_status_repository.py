"""
Job Status Repository for DynamoDB operations.
Persists queued job state so status survives eviction from memory.
"""
import logging
from datetime import datetime
from typing import Optional
import boto3
from botocore.exceptions import ClientError
from src.core import config
from src.core.exceptions import DynamoDBException
from src.models.upload_job import FileQueue, JobKind, JobStatus, QueuedFile, QueuedFileStatus

logger = logging.getLogger(__name__)


class JobStatusRepository:
    """Repository for queued job status DynamoDB operations."""

    def __init__(self):
        self.dynamodb = boto3.resource('dynamodb', region_name=config.settings.aws_region)
        self.table = self.dynamodb.Table(config.settings.job_status_table_name)

    def save(self, queue: FileQueue) -> None:
        """
        Write the full state of a queued job.

        Raises:
            DynamoDBException: If save operation fails
        """
        item = {
            'job_id': queue.job_id,
            'user_id': queue.user_id,
            'kind': queue.kind.value,
            'status': queue.status.value,
            'total_files': queue.total_files,
            'created_at': queue.created_at.isoformat(),
            'files': [f.to_item() for f in queue.files]
        }
        if queue.completed_at:
            item['completed_at'] = queue.completed_at.isoformat()
        if queue.error_message:
            item['error_message'] = queue.error_message

        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            raise DynamoDBException(f"Failed to save job status: {str(e)}") from e

    def update(self, job_id: str, updates: dict) -> None:
        """
        Update job status fields.

        Args:
            job_id: Job identifier
            updates: Dictionary of fields to update

        Raises:
            DynamoDBException: If update operation fails
        """
        update_expression = "SET " + ", ".join(f"#{key} = :{key}" for key in updates)
        expression_values = {f":{key}": value for key, value in updates.items()}
        expression_names = {f"#{key}": key for key in updates}

        try:
            self.table.update_item(
                Key={'job_id': job_id},
                UpdateExpression=update_expression,
                ExpressionAttributeNames=expression_names,
                ExpressionAttributeValues=expression_values
            )
        except ClientError as e:
            raise DynamoDBException(f"Failed to update job status: {str(e)}") from e

    def get_by_id(self, job_id: str) -> Optional[FileQueue]:
        """
        Retrieve a job by id.

        Returns:
            FileQueue without file payloads, or None if not found

        Raises:
            DynamoDBException: If query fails
        """
        try:
            response = self.table.get_item(Key={'job_id': job_id})
        except ClientError as e:
            raise DynamoDBException(f"Failed to get job status: {str(e)}") from e

        if 'Item' not in response:
            return None
        return self._item_to_queue(response['Item'])

    def _item_to_queue(self, item: dict) -> FileQueue:
        files = [self._item_to_file(f) for f in item.get('files', [])]
        queue = FileQueue(
            job_id=item['job_id'],
            user_id=item['user_id'],
            files=files,
            created_at=datetime.fromisoformat(item['created_at'])
        )
        queue.kind = JobKind(item.get('kind', JobKind.QUEUED.value))
        queue.status = JobStatus(item['status'])
        queue.error_message = item.get('error_message')
        if item.get('completed_at'):
            queue.completed_at = datetime.fromisoformat(item['completed_at'])
        return queue

    def _item_to_file(self, item: dict) -> QueuedFile:
        queued_file = QueuedFile(
            file_name=item['file_name'],
            extension="",
            content=None,
            file_index=int(item['file_index']),
            queued_at=datetime.fromisoformat(item['queued_at'])
        )
        queued_file.status = QueuedFileStatus(item['status'])
        queued_file.record_type = item.get('record_type')
        queued_file.processed_records = int(item.get('processed_records', 0))
        queued_file.failed_records = int(item.get('failed_records', 0))
        queued_file.total_records = int(item.get('total_records', 0))
        queued_file.errors = list(item.get('errors', []))
        if item.get('started_at'):
            queued_file.started_at = datetime.fromisoformat(item['started_at'])
        if item.get('completed_at'):
            queued_file.completed_at = datetime.fromisoformat(item['completed_at'])
        return queued_file
