"""
Local filesystem watchable for a single file.

This module provides a watchable for files on the local filesystem, mainly
for development and tests. The change token is an MD5 digest of the file
contents so that touching a file without changing it is not a modification.
"""

import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from storage_watcher.core.exceptions import ObjectNotFoundError, StorageAccessError
from storage_watcher.watchables.base import BaseWatchable, ObjectMetadata

CHUNK_SIZE = 64 * 1024


class LocalWatchable(BaseWatchable):
    """Watchable for a file on the local filesystem."""

    storage_type = "local"

    def __init__(self, path: Union[str, Path]) -> None:
        """
        Initialize the local watchable.

        Args:
            path: Path to the file, optionally prefixed with ``file://``
        """
        path_str = str(path)
        if path_str.startswith("file://"):
            path_str = path_str[len("file://"):]
        super().__init__(path_str)
        self.path = Path(path_str)

    def _head(self) -> ObjectMetadata:
        try:
            stat = os.stat(self.path)
            if not os.path.isfile(self.path):
                raise StorageAccessError(self.uri, "not a regular file")

            digest = hashlib.md5()
            with open(self.path, "rb") as file:
                for chunk in iter(lambda: file.read(CHUNK_SIZE), b""):
                    digest.update(chunk)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise ObjectNotFoundError(self.uri, e) from e
        except OSError as e:
            raise StorageAccessError(self.uri, str(e), e) from e

        return ObjectMetadata(
            etag=digest.hexdigest(),
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            extra={"inode": stat.st_ino},
        )
