"""
S3 watchable for a single object in an Amazon S3 bucket.

This module reads object metadata with ``HeadObject`` and translates
missing bucket/key errors into ``ObjectNotFoundError``.
"""

import re
from typing import Any, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storage_watcher.core.exceptions import ObjectNotFoundError, StorageAccessError
from storage_watcher.watchables.base import BaseWatchable, ObjectMetadata

# Error codes S3 uses for a missing key or bucket. HeadObject has no
# response body, so botocore reports the bare HTTP status there.
NOT_FOUND_ERROR_CODES = frozenset({"404", "NoSuchKey", "NoSuchBucket", "NotFound"})


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """
    Parse an S3 URI into bucket name and key.

    Args:
        uri: S3 URI in the format s3://bucket-name/key

    Returns:
        Tuple of (bucket_name, key)

    Raises:
        ValueError: If the URI format is invalid or has no key
    """
    match = re.match(r"^s3://([^/]+)/(.+)$", uri)

    if not match:
        raise ValueError(
            f"Invalid S3 URI: {uri}. Expected format: s3://bucket-name/key"
        )

    return match.group(1), match.group(2)


class S3Watchable(BaseWatchable):
    """Watchable for an object in Amazon S3."""

    storage_type = "s3"

    def __init__(
        self,
        uri: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        """
        Initialize the S3 watchable.

        Args:
            uri: S3 URI (s3://bucket-name/key) of the object
            aws_access_key_id: AWS access key ID (optional, can use environment variables)
            aws_secret_access_key: AWS secret access key (optional, can use environment variables)
            aws_region: AWS region (optional, defaults to us-east-1)
            endpoint_url: Custom endpoint, e.g. for MinIO or LocalStack
            client: Existing boto3 S3 client; it is not closed on release
        """
        super().__init__(uri)
        self.bucket_name, self.key = parse_s3_uri(uri)

        self._owns_client = client is None
        self.s3_client = client or boto3.client(
            "s3",
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=aws_region or "us-east-1",
            endpoint_url=endpoint_url,
        )

    def _head(self) -> ObjectMetadata:
        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=self.key)
        except ClientError as e:
            error_code = str(e.response.get("Error", {}).get("Code", ""))
            if error_code in NOT_FOUND_ERROR_CODES:
                raise ObjectNotFoundError(self.uri, e) from e
            raise StorageAccessError(self.uri, error_code or str(e), e) from e
        except BotoCoreError as e:
            raise StorageAccessError(self.uri, str(e), e) from e

        return ObjectMetadata(
            etag=response.get("ETag", "").strip('"'),
            size=response.get("ContentLength"),
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
            extra={
                "version_id": response.get("VersionId"),
                "storage_class": response.get("StorageClass"),
            },
        )

    def _close(self) -> None:
        if self._owns_client:
            self.s3_client.close()
