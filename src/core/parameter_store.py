"""
AWS Systems Manager Parameter Store helper.
Fetches parameters with caching to minimize API calls.
"""
import logging
import boto3
from functools import lru_cache

logger = logging.getLogger(__name__)


@lru_cache(maxsize=10)
def get_parameter(parameter_name: str, region: str = "us-east-1") -> str:
    """
    Fetch parameter from Parameter Store with caching.

    Args:
        parameter_name: Full parameter name (e.g., /bulk-ingest-api/dev/jwt-secret)
        region: AWS region

    Returns:
        Parameter value (decrypted if SecureString)
    """
    logger.info("Fetching parameter %s", parameter_name)
    ssm = boto3.client('ssm', region_name=region)
    response = ssm.get_parameter(Name=parameter_name, WithDecryption=True)
    return response['Parameter']['Value']
