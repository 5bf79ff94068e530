"""
Logging configuration for the Storage Watcher.

Events are rendered for a terminal in development and as one JSON object per
line everywhere else.
"""

import logging
import sys
import time
from typing import Any, Dict, List

import structlog
from structlog.stdlib import LoggerFactory
from structlog.types import Processor

from storage_watcher.core.config import Environment, Settings

# Cloud SDKs and the AMQP client log every request at DEBUG
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "google", "aio_pika", "aiormq")


def _add_timestamp(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict["timestamp"] = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime())
    return event_dict


def _service_info(settings: Settings) -> Processor:
    def add_service_info(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict["service"] = settings.PROJECT_NAME
        event_dict["version"] = settings.VERSION
        event_dict["environment"] = settings.ENVIRONMENT
        return event_dict

    return add_service_info


def configure_logging(settings: Settings) -> None:
    """
    Route structlog through the standard library at ``settings.LOG_LEVEL``.

    Args:
        settings: Settings providing level, environment and service name
    """
    level = str(getattr(settings.LOG_LEVEL, "value", settings.LOG_LEVEL)).upper()
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_timestamp,
        _service_info(settings),
        structlog.processors.format_exc_info,
    ]
    if settings.ENVIRONMENT == Environment.DEVELOPMENT:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    sdk_level = max(logging.getLevelName(level), logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)
