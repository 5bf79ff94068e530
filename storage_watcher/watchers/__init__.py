"""
Watchers package.

This package provides the polling watcher that turns metadata snapshots of
a single stored object into change events.
"""

from storage_watcher.watchers.object_watcher import (
    Listener,
    ListenerResult,
    ObjectWatcher,
    StopCondition,
    TimeUnit,
    WatchEventKind,
    WatcherState,
    classify_change,
)

__all__ = [
    "Listener",
    "ListenerResult",
    "ObjectWatcher",
    "StopCondition",
    "TimeUnit",
    "WatchEventKind",
    "WatcherState",
    "classify_change",
]
