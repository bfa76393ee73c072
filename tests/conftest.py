"""
Shared test fixtures and utilities.
"""
import os

# Must be set before src.core.config is imported anywhere
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("RECORDS_TABLE_NAME", "Records-test")
os.environ.setdefault("UPLOAD_HISTORY_TABLE_NAME", "UploadHistory-test")
os.environ.setdefault("JOB_STATUS_TABLE_NAME", "JobStatus-test")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

import pytest
import jwt
import boto3
from datetime import datetime, timedelta
from moto import mock_aws

USERS_CSV = (
    "FirstName,LastName,Username,Email,PhoneNumber,Role,IsActive\n"
    "John,Doe,john.doe,john.doe@company.com,555-0123,User,true\n"
    "Jane,Smith,jane.smith,jane.smith@company.com,555-0124,Admin,true\n"
)

APPLICATIONS_CSV = (
    "ApplicationName,ApplicationDescription,ApplicationDataSourceType\n"
    "Customer Database,Primary CRM store,MicrosoftSqlServer\n"
    "Orders API,Order service,RestApi\n"
    "Event Stream,Order events,ApacheKafka\n"
)


def create_tables():
    """Create the records, upload history and job status tables in the mocked account."""
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    records = dynamodb.create_table(
        TableName="Records-test",
        KeySchema=[{"AttributeName": "PK", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "PK", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST"
    )
    history = dynamodb.create_table(
        TableName="UploadHistory-test",
        KeySchema=[{"AttributeName": "upload_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "upload_id", "AttributeType": "S"},
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "uploaded_at", "AttributeType": "S"}
        ],
        GlobalSecondaryIndexes=[{
            "IndexName": "UserUploadsIndex",
            "KeySchema": [
                {"AttributeName": "user_id", "KeyType": "HASH"},
                {"AttributeName": "uploaded_at", "KeyType": "RANGE"}
            ],
            "Projection": {"ProjectionType": "ALL"}
        }],
        BillingMode="PAY_PER_REQUEST"
    )
    jobs = dynamodb.create_table(
        TableName="JobStatus-test",
        KeySchema=[{"AttributeName": "job_id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "job_id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST"
    )
    return {"records": records, "history": history, "jobs": jobs}


@pytest.fixture
def aws_tables():
    """Mocked DynamoDB tables with fresh settings."""
    from src.core import config
    config.settings = config.Settings()
    with mock_aws():
        yield create_tables()


@pytest.fixture
def auth_headers():
    """Generate valid JWT token and return authorization headers."""
    # Use same secret as in config
    jwt_secret = "dev-secret-change-in-production"
    jwt_algorithm = "HS256"

    # Create token with 1 hour expiration
    expiration = datetime.utcnow() + timedelta(hours=1)
    payload = {
        "sub": "test_user",
        "exp": expiration,
        "iat": datetime.utcnow()
    }

    token = jwt.encode(payload, jwt_secret, algorithm=jwt_algorithm)

    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def users_csv():
    return USERS_CSV.encode()


@pytest.fixture
def applications_csv():
    return APPLICATIONS_CSV.encode()
