"""
Base watchable for abstracting access to a single stored object.

This module defines the abstract base class for watchables, ensuring a
consistent interface across different storage implementations. A watchable
knows how to fetch the current metadata of one object and how to release
whatever client resources it holds.
"""

import abc
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import structlog

from storage_watcher.utils.metrics import STORAGE_FETCH_TIME

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ObjectMetadata:
    """
    Snapshot of an object's metadata.

    Only ``etag`` takes part in change detection; the other fields are
    informational.
    """
    etag: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


class BaseWatchable(abc.ABC):
    """Abstract base class for watchable storage objects."""

    storage_type: str = "base"

    def __init__(self, uri: str) -> None:
        """
        Initialize the watchable.

        Args:
            uri: URI or path of the object
        """
        self.uri = uri
        self._closed = False
        self._close_lock = threading.Lock()

    @abc.abstractmethod
    def _head(self) -> ObjectMetadata:
        """
        Read the object's metadata from the backend.

        Returns:
            Current metadata of the object

        Raises:
            ObjectNotFoundError: If the object or its container does not exist
            StorageAccessError: On any other backend failure
        """
        pass

    def _close(self) -> None:
        """Release backend clients. Subclasses override when they hold any."""

    def fetch_metadata(self) -> ObjectMetadata:
        """
        Fetch the current metadata of the watched object.

        Returns:
            Current metadata of the object

        Raises:
            ObjectNotFoundError: If the object or its container does not exist
            StorageAccessError: On any other backend failure
        """
        start_time = time.perf_counter()
        try:
            return self._head()
        finally:
            STORAGE_FETCH_TIME.labels(storage_type=self.storage_type).observe(
                time.perf_counter() - start_time
            )

    def release(self) -> None:
        """Release resources held for the watch. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._close()
        except Exception as e:
            logger.warning("Error releasing watchable", uri=self.uri, error=str(e))
        else:
            logger.debug("Watchable released", uri=self.uri)

    @property
    def closed(self) -> bool:
        """Whether ``release`` has been called."""
        return self._closed

    def __enter__(self) -> "BaseWatchable":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} uri={self.uri!r}>"
