"""Pytest configuration and fixtures for db_backup tests."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from db_backup.config import BackupConfig
from db_backup.runner import CycleState

ENV = {
    "BACKUP_DATABASE_URL": "postgres://host/db",
    "BACKUP_DATABASE_NAMES": "app,analytics",
    "BACKUP_CRON_SCHEDULE": "0 3 * * *",
    "AWS_S3_BUCKET": "my-bucket",
    "AWS_S3_REGION": "us-east-1",
}


@pytest.fixture
def env(monkeypatch):
    """A complete backup environment with no optional variables set."""
    for key in ("AWS_S3_ENDPOINT", "BACKUP_HEALTH_PORT"):
        monkeypatch.delenv(key, raising=False)
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)
    return dict(ENV)


@pytest.fixture
def config(tmp_path):
    """Config for the two-database scenario, writing dumps under tmp_path."""
    return BackupConfig(
        database_url="postgres://host/db",
        database_names=("app", "analytics"),
        cron_schedule="0 3 * * *",
        s3_bucket="my-bucket",
        s3_region="us-east-1",
        tmp_dir=str(tmp_path),
    )


@pytest.fixture
def storage():
    """A storage double with an empty bucket."""
    fake = MagicMock()
    fake.list_objects.return_value = []
    fake.delete_objects.side_effect = lambda keys: len(list(keys))
    return fake


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 15, 3, 0, 0, 123000, tzinfo=UTC)


@pytest.fixture
def cycle_state():
    """A fresh state object, independent of the module-level one."""
    return CycleState()
