"""
Core configuration for the Bulk Ingestion API.
Manages environment variables, upload limits and AWS service settings.
"""
import os
import logging
from typing import List
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # AWS Configuration
    aws_region: str = os.getenv("AWS_REGION", "us-east-1")
    records_table_name: str = os.getenv("RECORDS_TABLE_NAME", "")
    upload_history_table_name: str = os.getenv("UPLOAD_HISTORY_TABLE_NAME", "")
    job_status_table_name: str = os.getenv("JOB_STATUS_TABLE_NAME", "")

    # API Configuration
    api_title: str = os.getenv("API_TITLE", "Bulk Ingestion API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # File Upload Limits
    max_file_size_mb: int = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
    max_rows_per_file: int = int(os.getenv("MAX_ROWS_PER_FILE", "50000"))
    max_files_per_job: int = int(os.getenv("MAX_FILES_PER_JOB", "20"))
    allowed_extensions: List[str] = [".csv", ".json", ".xml", ".xlsx", ".xls"]

    # Processing
    progress_batch_size: int = int(os.getenv("PROGRESS_BATCH_SIZE", "100"))
    detection_min_confidence: float = float(os.getenv("DETECTION_MIN_CONFIDENCE", "0.3"))
    password_hash_rounds: int = int(os.getenv("PASSWORD_HASH_ROUNDS", "12"))

    # Queue and push channel
    queue_retention_minutes: int = int(os.getenv("QUEUE_RETENTION_MINUTES", "30"))
    subscriber_buffer_size: int = int(os.getenv("SUBSCRIBER_BUFFER_SIZE", "256"))

    # History pagination
    history_default_page_size: int = int(os.getenv("HISTORY_DEFAULT_PAGE_SIZE", "10"))
    history_max_page_size: int = int(os.getenv("HISTORY_MAX_PAGE_SIZE", "100"))

    # Authentication
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expiration_hours: int = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))

    @property
    def jwt_secret(self) -> str:
        """Get JWT secret from Parameter Store."""
        if self.environment in ("local", "test"):
            return os.getenv("JWT_SECRET", "dev-secret-change-in-production")
        try:
            from src.core.parameter_store import get_parameter
            return get_parameter(f"/bulk-ingest-api/{self.environment}/jwt-secret", self.aws_region)
        except Exception as e:
            # Fallback for local dev or if parameter doesn't exist
            fallback = os.getenv("JWT_SECRET", "dev-secret-change-in-production")
            logger.warning("Using fallback JWT secret. Error: %s", e)
            return fallback

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "dev")

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
