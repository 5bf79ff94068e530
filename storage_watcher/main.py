"""
Main module for the Storage Watcher Service.

This module serves as the entry point for the storage watcher service, which polls
a single object in a storage system (local, S3, GCS) and logs, and optionally
publishes to RabbitMQ, an event every time the object is created, modified or deleted.
"""

import argparse
import asyncio
import concurrent.futures
import signal
from typing import Any, Dict, List, Optional

import structlog
from dotenv import load_dotenv

from storage_watcher.core.config import Settings, get_settings
from storage_watcher.publisher.message_publisher import MessagePublisher, build_event_message
from storage_watcher.scheduling.scheduler import FixedDelayScheduler
from storage_watcher.utils.logging import configure_logging
from storage_watcher.utils.metrics import start_metrics_server
from storage_watcher.watchables import create_watchable
from storage_watcher.watchers.object_watcher import (
    ListenerResult,
    ObjectWatcher,
    TimeUnit,
    WatchEventKind,
)

logger = structlog.get_logger(__name__)

PUBLISH_TIMEOUT = 10.0
STATUS_POLL_INTERVAL = 0.5


class StorageWatcherService:
    """Service for watching one stored object for changes."""

    def __init__(
            self,
            settings: Settings,
            publisher: Optional[MessagePublisher] = None,
    ) -> None:
        """
        Initialize the storage watcher service.

        Args:
            settings: Service settings
            publisher: Publisher for change events; built from settings when
                ``PUBLISH_EVENTS`` is set and none is given
        """
        self.settings = settings
        self.scheduler = FixedDelayScheduler(max_workers=settings.SCHEDULER_WORKERS)

        if publisher is None and settings.PUBLISH_EVENTS:
            publisher = MessagePublisher(
                host=settings.RABBITMQ_HOST,
                port=settings.RABBITMQ_PORT,
                username=settings.RABBITMQ_USER,
                password=settings.RABBITMQ_PASSWORD.get_secret_value(),
                queue=settings.RABBITMQ_QUEUE,
                exchange=settings.RABBITMQ_EXCHANGE,
            )
        self.publisher = publisher

        self.watcher = ObjectWatcher(create_watchable(settings.WATCH_URI, settings), self.on_change)
        if settings.MAX_RUNNING_TIME is not None:
            self.watcher.with_max_running_time(settings.MAX_RUNNING_TIME, TimeUnit.SECONDS)
        if settings.MAX_RUNNING_COUNT is not None:
            self.watcher.with_max_running_count(settings.MAX_RUNNING_COUNT)

        self._loop: Optional[asyncio.AbstractEventLoop] = None

        logger.info(
            "Initialized storage watcher service",
            uri=settings.WATCH_URI,
            interval=settings.WATCH_INTERVAL,
            publish_events=self.publisher is not None,
        )

    def on_change(self, kind: WatchEventKind, watcher: ObjectWatcher) -> ListenerResult:
        """
        Listener invoked from the scheduler thread for every change.

        Publishing blocks the tick until RabbitMQ accepted the message, so a
        failed publish ends the watch instead of dropping events.
        """
        message = build_event_message(kind, watcher)
        logger.info("Object changed", **message)

        if self.publisher is not None and self._loop is not None:
            future = asyncio.run_coroutine_threadsafe(
                self.publisher.publish_message(message), self._loop
            )
            try:
                future.result(timeout=PUBLISH_TIMEOUT)
            except concurrent.futures.TimeoutError:
                # Drop the pending publish so it cannot land after the watch ended
                future.cancel()
                raise

        return ListenerResult.CONTINUE

    async def start(self) -> None:
        """Start watching and return once the watcher has stopped."""
        self._loop = asyncio.get_running_loop()

        if self.publisher is not None:
            await self.publisher.connect()

        try:
            # start() fetches the baseline synchronously
            try:
                await asyncio.to_thread(
                    self.watcher.start, self.scheduler, self.settings.WATCH_INTERVAL, TimeUnit.SECONDS
                )
            except Exception:
                self.watcher.watchable.release()
                raise

            while self.watcher.is_running:
                await asyncio.sleep(STATUS_POLL_INTERVAL)

            logger.info(
                "Watcher finished",
                reason=self.watcher.stop_reason,
                run_count=self.watcher.run_count(),
            )
        finally:
            self.scheduler.shutdown(wait=False)
            if self.publisher is not None:
                await self.publisher.close()

    async def stop(self) -> None:
        """Stop the storage watcher service."""
        logger.info("Stopping storage watcher service")
        if self.watcher.is_running:
            self.watcher.stop()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line overrides for the environment settings."""
    parser = argparse.ArgumentParser(
        prog="storage-watcher",
        description="Poll a stored object and report created, modified and deleted events.",
    )
    parser.add_argument("uri", nargs="?", help="s3://bucket/key, gs://bucket/blob or a local path")
    parser.add_argument("-i", "--interval", type=float, help="Seconds between checks")
    parser.add_argument("--max-running-time", type=float, help="Stop after this many seconds")
    parser.add_argument("--max-running-count", type=int, help="Stop after this many checks")
    parser.add_argument("--publish", action="store_true", default=None, help="Publish events to RabbitMQ")
    parser.add_argument("--log-level", help="Logging level")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    """
    Apply command line overrides on top of the environment settings.

    Args:
        args: Parsed arguments
        base: Settings loaded from the environment

    Returns:
        Validated settings
    """
    overrides: Dict[str, Any] = {
        "WATCH_URI": args.uri,
        "WATCH_INTERVAL": args.interval,
        "MAX_RUNNING_TIME": args.max_running_time,
        "MAX_RUNNING_COUNT": args.max_running_count,
        "PUBLISH_EVENTS": args.publish,
        "LOG_LEVEL": args.log_level.upper() if args.log_level else None,
    }
    data = base.model_dump()
    data.update({key: value for key, value in overrides.items() if value is not None})
    return Settings.model_validate(data)


async def run_service(settings: Settings) -> None:
    """Run the storage watcher service."""
    service = StorageWatcherService(settings)

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    for signal_name in ("SIGINT", "SIGTERM"):
        try:
            loop.add_signal_handler(
                getattr(signal, signal_name),
                lambda: asyncio.create_task(service.stop())
            )
        except (NotImplementedError, AttributeError):
            # Signal handling is not available on Windows
            pass

    try:
        await service.start()
    except asyncio.CancelledError:
        logger.info("Service cancelled")
    finally:
        await service.stop()


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the service."""
    load_dotenv()
    settings = settings_from_args(parse_args(argv), get_settings())
    configure_logging(settings)

    if settings.METRICS_PORT:
        start_metrics_server(settings.METRICS_PORT)

    try:
        asyncio.run(run_service(settings))
    except KeyboardInterrupt:
        logger.info("Service interrupted")


if __name__ == "__main__":
    main()
