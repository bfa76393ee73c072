"""
Tests for settings and the Parameter Store lookup.
"""
import boto3
import pytest
from moto import mock_aws
from src.core import config
from src.core.parameter_store import get_parameter


class TestSettings:
    """Test suite for Settings."""

    @pytest.fixture(autouse=True)
    def clear_parameter_cache(self):
        get_parameter.cache_clear()
        yield
        get_parameter.cache_clear()

    def test_test_environment_uses_local_secret(self):
        settings = config.Settings(environment="test")

        assert settings.jwt_secret == "dev-secret-change-in-production"

    @mock_aws
    def test_secret_from_parameter_store(self):
        ssm = boto3.client("ssm", region_name="us-east-1")
        ssm.put_parameter(Name="/bulk-ingest-api/dev/jwt-secret", Value="from-ssm", Type="SecureString")

        settings = config.Settings(environment="dev", aws_region="us-east-1")

        assert settings.jwt_secret == "from-ssm"

    @mock_aws
    def test_missing_parameter_falls_back(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        settings = config.Settings(environment="prod", aws_region="us-east-1")

        assert settings.jwt_secret == "dev-secret-change-in-production"

    def test_upload_limits(self):
        settings = config.Settings(max_file_size_mb=2)

        assert settings.max_file_size_bytes == 2 * 1024 * 1024
        assert ".xlsx" in settings.allowed_extensions
        assert settings.password_hash_rounds == 4
