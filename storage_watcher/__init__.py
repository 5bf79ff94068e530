"""Storage Watcher.

Polls a single object in a cloud object store (S3, GCS) or on the local
filesystem and reports created, modified and deleted events to a listener.
"""

from storage_watcher.watchers.object_watcher import (
    ListenerResult,
    ObjectWatcher,
    TimeUnit,
    WatchEventKind,
    WatcherState,
)

__version__ = "0.1.0"

__all__ = [
    "ListenerResult",
    "ObjectWatcher",
    "TimeUnit",
    "WatchEventKind",
    "WatcherState",
]
