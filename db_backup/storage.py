"""S3-compatible storage for backups (AWS, Wasabi, MinIO)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Iterable

import boto3
from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from db_backup.errors import PruneFailure, UploadFailure

if TYPE_CHECKING:
    from db_backup.config import BackupConfig

logger = logging.getLogger(__name__)

_S3_ERRORS = (BotoCoreError, ClientError, Boto3Error)


@dataclass
class StoredObject:
    """Metadata for one object in the bucket."""

    key: str
    last_modified: datetime | None
    size: int = 0


class S3Storage:
    """Upload, list and batch-delete backups in a single bucket."""

    def __init__(self, config: BackupConfig) -> None:
        self.config = config
        self.bucket = config.s3_bucket

    def _client(self):
        options = {"region_name": self.config.s3_region}
        if self.config.s3_endpoint:
            logger.info(f"Using custom endpoint: {self.config.s3_endpoint}")
            options["endpoint_url"] = self.config.s3_endpoint
        return boto3.client("s3", **options)

    def upload(self, object_name: str, local_path: str) -> None:
        """Stream a local file to ``s3://<bucket>/<object_name>``.

        Uses boto3's managed transfer, which switches to multipart uploads for
        large files. Raises UploadFailure on any transport or service error.
        """
        logger.info(f"Uploading {local_path} to s3://{self.bucket}/{object_name}")
        try:
            client = self._client()
            with open(local_path, "rb") as f:
                client.upload_fileobj(f, self.bucket, object_name)
        except (OSError, *_S3_ERRORS) as e:
            raise UploadFailure(f"Upload of {object_name} failed: {e}") from e
        logger.info(f"Uploaded s3://{self.bucket}/{object_name}")

    def list_objects(self) -> list[StoredObject]:
        """List the bucket with a single request (first page only)."""
        try:
            response = self._client().list_objects(Bucket=self.bucket)
        except _S3_ERRORS as e:
            raise PruneFailure(f"Listing s3://{self.bucket} failed: {e}") from e

        if response.get("IsTruncated"):
            logger.warning(f"Listing of {self.bucket} is truncated; objects past the first page are not pruned")

        objects = []
        for obj in response.get("Contents", []):
            modified = obj.get("LastModified")
            if modified is not None and modified.tzinfo is None:
                modified = modified.replace(tzinfo=UTC)
            objects.append(StoredObject(key=obj["Key"], last_modified=modified, size=obj.get("Size", 0)))
        return objects

    def delete_objects(self, keys: Iterable[str]) -> int:
        """Delete keys in one batch request. Returns how many S3 reported deleted."""
        keys = list(keys)
        try:
            response = self._client().delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in keys]},
            )
        except _S3_ERRORS as e:
            raise PruneFailure(f"Deleting {len(keys)} objects from s3://{self.bucket} failed: {e}") from e

        for error in response.get("Errors", []):
            logger.warning(f"Could not delete {error.get('Key')}: {error.get('Code')} {error.get('Message')}")
        return len(response.get("Deleted", []))
