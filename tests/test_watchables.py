"""
Unit tests for the storage watchables.

Cloud clients are replaced with mocks; the local watchable works on a
temporary directory.
"""

import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError
from google.api_core.exceptions import Forbidden
from google.cloud.exceptions import NotFound

from storage_watcher.core.config import Settings
from storage_watcher.core.exceptions import ObjectNotFoundError, StorageAccessError
from storage_watcher.watchables import create_watchable, get_storage_type
from storage_watcher.watchables.gcs import GCSWatchable, parse_gcs_uri
from storage_watcher.watchables.local import LocalWatchable
from storage_watcher.watchables.s3 import S3Watchable, parse_s3_uri


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


class TestUriParsing(unittest.TestCase):
    """Unit tests for URI parsing and storage type detection."""

    def test_parse_s3_uri(self):
        self.assertEqual(parse_s3_uri("s3://bucket/dir/file.txt"), ("bucket", "dir/file.txt"))

    def test_parse_s3_uri_requires_key(self):
        for uri in ("s3://bucket", "s3://bucket/", "gs://bucket/key", "bucket/key"):
            with self.subTest(uri=uri):
                with self.assertRaises(ValueError):
                    parse_s3_uri(uri)

    def test_parse_gcs_uri(self):
        self.assertEqual(parse_gcs_uri("gs://bucket/a/b.csv"), ("bucket", "a/b.csv"))
        with self.assertRaises(ValueError):
            parse_gcs_uri("gs://bucket")

    def test_get_storage_type(self):
        self.assertEqual(get_storage_type("s3://b/k"), "s3")
        self.assertEqual(get_storage_type("gs://b/k"), "gcs")
        self.assertEqual(get_storage_type("file:///tmp/x"), "local")
        self.assertEqual(get_storage_type("/tmp/x"), "local")
        with self.assertRaises(ValueError):
            get_storage_type("ftp://host/file")


class TestS3Watchable(unittest.TestCase):
    """Unit tests for the S3Watchable class."""

    def setUp(self):
        """Set up the test environment."""
        self.client = MagicMock()
        self.watchable = S3Watchable("s3://bucket/reports/q1.csv", client=self.client)

    def test_fetch_metadata(self):
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.client.head_object.return_value = {
            "ETag": '"abc123"',
            "ContentLength": 42,
            "LastModified": modified,
            "ContentType": "text/csv",
            "VersionId": "v7",
        }

        metadata = self.watchable.fetch_metadata()

        self.client.head_object.assert_called_once_with(Bucket="bucket", Key="reports/q1.csv")
        self.assertEqual(metadata.etag, "abc123")
        self.assertEqual(metadata.size, 42)
        self.assertEqual(metadata.last_modified, modified)
        self.assertEqual(metadata.content_type, "text/csv")
        self.assertEqual(metadata.extra["version_id"], "v7")

    def test_missing_key_or_bucket_is_not_found(self):
        for code in ("404", "NoSuchKey", "NoSuchBucket", "NotFound"):
            with self.subTest(code=code):
                self.client.head_object.side_effect = client_error(code)
                with self.assertRaises(ObjectNotFoundError):
                    self.watchable.fetch_metadata()

    def test_other_client_errors_are_access_errors(self):
        self.client.head_object.side_effect = client_error("403")
        with self.assertRaises(StorageAccessError) as ctx:
            self.watchable.fetch_metadata()
        self.assertEqual(ctx.exception.reason, "403")
        self.assertNotIsInstance(ctx.exception, ObjectNotFoundError)

    def test_connection_errors_are_access_errors(self):
        self.client.head_object.side_effect = EndpointConnectionError(endpoint_url="http://s3")
        with self.assertRaises(StorageAccessError):
            self.watchable.fetch_metadata()

    def test_injected_client_is_not_closed(self):
        self.watchable.release()
        self.client.close.assert_not_called()
        self.assertTrue(self.watchable.closed)

    @patch("storage_watcher.watchables.s3.boto3.client")
    def test_owned_client_closed_once(self, mock_client):
        watchable = S3Watchable("s3://bucket/key", aws_region="eu-west-1")

        watchable.release()
        watchable.release()

        mock_client.assert_called_once()
        self.assertEqual(mock_client.call_args.kwargs["region_name"], "eu-west-1")
        mock_client.return_value.close.assert_called_once()


class TestGCSWatchable(unittest.TestCase):
    """Unit tests for the GCSWatchable class."""

    def setUp(self):
        """Set up the test environment."""
        self.client = MagicMock()
        self.bucket = self.client.bucket.return_value
        self.watchable = GCSWatchable("gs://bucket/data/file.json", client=self.client)

    def test_fetch_metadata_uses_generation(self):
        blob = MagicMock(
            etag="CJjB", generation=1700000000000, metageneration=3,
            size=128, content_type="application/json", md5_hash="xyz",
        )
        self.bucket.get_blob.return_value = blob

        metadata = self.watchable.fetch_metadata()

        self.client.bucket.assert_called_once_with("bucket")
        self.bucket.get_blob.assert_called_once_with("data/file.json")
        self.assertEqual(metadata.etag, "1700000000000")
        self.assertEqual(metadata.size, 128)
        self.assertEqual(metadata.extra["metageneration"], 3)

    def test_falls_back_to_etag(self):
        self.bucket.get_blob.return_value = MagicMock(etag="CJjB", generation=None)
        self.assertEqual(self.watchable.fetch_metadata().etag, "CJjB")

    def test_missing_blob_is_not_found(self):
        self.bucket.get_blob.return_value = None
        with self.assertRaises(ObjectNotFoundError):
            self.watchable.fetch_metadata()

    def test_missing_bucket_is_not_found(self):
        self.bucket.get_blob.side_effect = NotFound("bucket does not exist")
        with self.assertRaises(ObjectNotFoundError):
            self.watchable.fetch_metadata()

    def test_other_api_errors_are_access_errors(self):
        self.bucket.get_blob.side_effect = Forbidden("no access")
        with self.assertRaises(StorageAccessError):
            self.watchable.fetch_metadata()


class TestLocalWatchable(unittest.TestCase):
    """Unit tests for the LocalWatchable class."""

    def setUp(self):
        """Set up the test environment."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "document.txt"
        self.watchable = LocalWatchable(self.path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_missing_file_is_not_found(self):
        with self.assertRaises(ObjectNotFoundError):
            self.watchable.fetch_metadata()

    def test_missing_directory_is_not_found(self):
        watchable = LocalWatchable(Path(self.temp_dir.name) / "missing" / "file.txt")
        with self.assertRaises(ObjectNotFoundError):
            watchable.fetch_metadata()

    def test_token_tracks_content(self):
        self.path.write_text("first")
        first = self.watchable.fetch_metadata()

        self.path.write_text("second")
        second = self.watchable.fetch_metadata()

        self.assertNotEqual(first.etag, second.etag)
        self.assertEqual(second.size, len("second"))

    def test_touch_does_not_change_token(self):
        self.path.write_text("same")
        before = self.watchable.fetch_metadata()

        os.utime(self.path, (1_000_000, 1_000_000))
        after = self.watchable.fetch_metadata()

        self.assertEqual(before.etag, after.etag)
        self.assertNotEqual(before.last_modified, after.last_modified)

    def test_file_uri_prefix(self):
        self.path.write_text("content")
        watchable = LocalWatchable(f"file://{self.path}")
        self.assertEqual(watchable.path, self.path)
        self.assertEqual(watchable.fetch_metadata().size, 7)

    def test_directory_is_access_error(self):
        with self.assertRaises(StorageAccessError):
            LocalWatchable(self.temp_dir.name).fetch_metadata()

    def test_context_manager_releases(self):
        with self.watchable as watchable:
            self.assertFalse(watchable.closed)
        self.assertTrue(self.watchable.closed)


class TestCreateWatchable(unittest.TestCase):
    """Unit tests for the watchable factory."""

    def test_local_path(self):
        self.assertIsInstance(create_watchable("/tmp/some/file.txt"), LocalWatchable)

    @patch("storage_watcher.watchables.s3.boto3.client")
    def test_s3_uses_settings(self, mock_client):
        settings = Settings(
            AWS_ACCESS_KEY_ID="key",
            AWS_SECRET_ACCESS_KEY="secret",
            AWS_REGION="ap-south-1",
            S3_ENDPOINT_URL="http://localhost:9000",
        )

        watchable = create_watchable("s3://bucket/key", settings)

        self.assertIsInstance(watchable, S3Watchable)
        kwargs = mock_client.call_args.kwargs
        self.assertEqual(kwargs["aws_access_key_id"], "key")
        self.assertEqual(kwargs["aws_secret_access_key"], "secret")
        self.assertEqual(kwargs["region_name"], "ap-south-1")
        self.assertEqual(kwargs["endpoint_url"], "http://localhost:9000")

    @patch("storage_watcher.watchables.gcs.storage.Client")
    def test_gcs_uses_project(self, mock_client):
        watchable = create_watchable("gs://bucket/blob", Settings(GCS_PROJECT_ID="proj"))

        self.assertIsInstance(watchable, GCSWatchable)
        mock_client.assert_called_once_with(project="proj")

    def test_unsupported_scheme(self):
        with self.assertRaises(ValueError):
            create_watchable("azure://container/blob")


if __name__ == "__main__":
    unittest.main()
