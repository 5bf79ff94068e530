"""
Watchables package for different storage implementations.

This package provides access to the metadata of a single object in
different storage systems, including local filesystem, S3, and Google
Cloud Storage.
"""

from typing import Dict, Optional

from storage_watcher.core.config import Settings
from storage_watcher.watchables.base import BaseWatchable, ObjectMetadata
from storage_watcher.watchables.local import LocalWatchable

SUPPORTED_SCHEMES = ("s3", "gs", "file")


def get_storage_type(uri: str) -> str:
    """
    Determine the storage type from a URI.

    Args:
        uri: ``s3://``, ``gs://``, ``file://`` URI or a plain local path

    Returns:
        One of 's3', 'gcs' or 'local'

    Raises:
        ValueError: If the URI has an unsupported scheme
    """
    if "://" not in uri:
        return "local"

    scheme = uri.split("://", 1)[0].lower()
    storage_types: Dict[str, str] = {"s3": "s3", "gs": "gcs", "file": "local"}
    if scheme not in storage_types:
        raise ValueError(
            f"Unsupported URI scheme: {scheme}. "
            f"Supported schemes: {', '.join(SUPPORTED_SCHEMES)}"
        )
    return storage_types[scheme]


def create_watchable(uri: str, settings: Optional[Settings] = None) -> BaseWatchable:
    """
    Create the appropriate watchable for a URI.

    Cloud SDKs are imported lazily so a local-only deployment does not need
    credentials configured.

    Args:
        uri: URI or path of the object to watch
        settings: Settings holding cloud credentials

    Returns:
        Watchable instance
    """
    storage_type = get_storage_type(uri)

    if storage_type == "local":
        return LocalWatchable(uri)

    if storage_type == "s3":
        from storage_watcher.watchables.s3 import S3Watchable

        secret = settings.AWS_SECRET_ACCESS_KEY if settings else None
        return S3Watchable(
            uri,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID if settings else None,
            aws_secret_access_key=secret.get_secret_value() if secret else None,
            aws_region=settings.AWS_REGION if settings else None,
            endpoint_url=settings.S3_ENDPOINT_URL if settings else None,
        )

    from storage_watcher.watchables.gcs import GCSWatchable

    return GCSWatchable(
        uri,
        credentials_path=settings.GCS_CREDENTIALS_PATH if settings else None,
        project_id=settings.GCS_PROJECT_ID if settings else None,
    )


__all__ = [
    "BaseWatchable",
    "LocalWatchable",
    "ObjectMetadata",
    "create_watchable",
    "get_storage_type",
]
