"""
Amazon S3 object store backend.

Thin wrapper over a boto3 S3 client: listing is paginated, directory
markers are skipped, and botocore errors are mapped onto the gallery error
taxonomy.
"""

import logging
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from gallery.exceptions import NotFoundError, StorageError
from gallery.storage.base import ObjectStore

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class S3ObjectStore(ObjectStore):
    """Object store backed by Amazon S3 (or any S3-compatible endpoint)."""

    def __init__(self, region: str = "us-east-1", client=None):
        """
        Initialize S3 backend.

        Args:
            region: AWS region for the client (ignored when client is given)
            client: Pre-built boto3 S3 client, mainly for tests
        """
        self.region = region
        self.client = client or boto3.client("s3", region_name=region)
        logger.info(f"S3 object store initialized (region: {self.region})")

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return str(error.response.get("Error", {}).get("Code", ""))

    def list_objects(self, bucket: str, prefix: str) -> List[str]:
        keys = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key.endswith("/"):
                        continue
                    keys.append(key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list s3://{bucket}/{prefix}: {e}") from e
        return keys

    def download_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                raise NotFoundError(f"Object not found: s3://{bucket}/{key}") from e
            raise StorageError(f"Failed to download s3://{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to download s3://{bucket}/{key}: {e}") from e

    def upload_object(self, bucket: str, key: str, data: bytes) -> None:
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload s3://{bucket}/{key}: {e}") from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete s3://{bucket}/{key}: {e}") from e

    def delete_objects(self, bucket: str, keys: Iterable[str]) -> None:
        keys = list(keys)
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                raise StorageError(f"Failed to batch delete in s3://{bucket}: {e}") from e

            errors = response.get("Errors", [])
            if errors:
                failed = ", ".join(err.get("Key", "?") for err in errors)
                raise StorageError(f"Failed to delete keys in s3://{bucket}: {failed}")

    def signed_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to sign s3://{bucket}/{key}: {e}") from e

    def object_exists(self, bucket: str, key: str) -> bool:
        try:
            self.client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if self._error_code(e) in NOT_FOUND_CODES:
                return False
            raise StorageError(f"Failed to stat s3://{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat s3://{bucket}/{key}: {e}") from e
