"""Core configuration and error types for the storage watcher."""
