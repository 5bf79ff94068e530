"""Logging and metrics helpers for the storage watcher."""
