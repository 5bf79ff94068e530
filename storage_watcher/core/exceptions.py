"""
Exception hierarchy for the storage watcher.

Hierarchy:
    StorageWatcherError
    ├── WatcherStateError
    └── StorageError
        ├── ObjectNotFoundError
        └── StorageAccessError
"""

from typing import Any, Dict, Optional


class StorageWatcherError(Exception):
    """Base exception for all storage watcher errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


class WatcherStateError(StorageWatcherError):
    """A watcher operation was called in a lifecycle state that does not allow it."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            f"Cannot {operation} a watcher in state '{state}'",
            context={"operation": operation, "state": state},
        )
        self.operation = operation
        self.state = state


class StorageError(StorageWatcherError):
    """Base for errors raised by storage backends."""

    def __init__(self, message: str, uri: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, context={"uri": uri})
        self.uri = uri
        self.cause = cause


class ObjectNotFoundError(StorageError):
    """The watched object, or the bucket/directory holding it, does not exist."""

    def __init__(self, uri: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Object not found: {uri}", uri, cause)


class StorageAccessError(StorageError):
    """Any other failure while reading object metadata from a storage backend."""

    def __init__(self, uri: str, reason: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Cannot read metadata for {uri}: {reason}", uri, cause)
        self.reason = reason
