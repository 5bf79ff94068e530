"""
Google Cloud Storage watchable for a single blob in a GCS bucket.
"""

import re
from typing import Any, Optional, Tuple

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import storage
from google.cloud.exceptions import NotFound

from storage_watcher.core.exceptions import ObjectNotFoundError, StorageAccessError
from storage_watcher.watchables.base import BaseWatchable, ObjectMetadata


def parse_gcs_uri(uri: str) -> Tuple[str, str]:
    """
    Parse a GCS URI into bucket name and blob name.

    Args:
        uri: GCS URI in the format gs://bucket-name/blob

    Returns:
        Tuple of (bucket_name, blob_name)

    Raises:
        ValueError: If the URI format is invalid or has no blob name
    """
    match = re.match(r"^gs://([^/]+)/(.+)$", uri)

    if not match:
        raise ValueError(
            f"Invalid GCS URI: {uri}. Expected format: gs://bucket-name/blob"
        )

    return match.group(1), match.group(2)


class GCSWatchable(BaseWatchable):
    """Watchable for a blob in Google Cloud Storage."""

    storage_type = "gcs"

    def __init__(
        self,
        uri: str,
        credentials_path: Optional[str] = None,
        project_id: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        """
        Initialize the GCS watchable.

        Args:
            uri: GCS URI (gs://bucket-name/blob) of the object
            credentials_path: Path to GCP service account credentials JSON (optional)
            project_id: GCP project ID (optional, can use default from credentials)
            client: Existing ``storage.Client``; it is not closed on release
        """
        super().__init__(uri)
        self.bucket_name, self.blob_name = parse_gcs_uri(uri)

        self._owns_client = client is None
        if client is not None:
            self.gcs_client = client
        elif credentials_path:
            self.gcs_client = storage.Client.from_service_account_json(credentials_path)
        else:
            self.gcs_client = storage.Client(project=project_id)

        self.bucket = self.gcs_client.bucket(self.bucket_name)

    def _head(self) -> ObjectMetadata:
        try:
            blob = self.bucket.get_blob(self.blob_name)
        except NotFound as e:
            # get_blob returns None for a missing blob, but a missing bucket raises
            raise ObjectNotFoundError(self.uri, e) from e
        except GoogleAPICallError as e:
            raise StorageAccessError(self.uri, str(e), e) from e

        if blob is None:
            raise ObjectNotFoundError(self.uri)

        return ObjectMetadata(
            # generation changes only when the content is rewritten
            etag=str(blob.generation) if blob.generation is not None else blob.etag,
            size=blob.size,
            last_modified=blob.updated,
            content_type=blob.content_type,
            extra={
                "md5_hash": blob.md5_hash,
                "generation": blob.generation,
                "metageneration": blob.metageneration,
            },
        )

    def _close(self) -> None:
        if self._owns_client:
            self.gcs_client.close()
