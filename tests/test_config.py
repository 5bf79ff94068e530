"""
Unit tests for settings and logging configuration.
"""

import logging
import os
import unittest
from unittest.mock import patch

import structlog
from pydantic import ValidationError

from storage_watcher.core.config import Environment, Settings, get_settings
from storage_watcher.utils.logging import configure_logging


class TestSettings(unittest.TestCase):
    """Unit tests for the Settings class."""

    def test_defaults(self):
        settings = Settings()
        self.assertEqual(settings.WATCH_INTERVAL, 10.0)
        self.assertIsNone(settings.MAX_RUNNING_COUNT)
        self.assertFalse(settings.PUBLISH_EVENTS)

    def test_reads_environment(self):
        env = {
            "WATCH_URI": "s3://bucket/key",
            "WATCH_INTERVAL": "2.5",
            "MAX_RUNNING_COUNT": "7",
            "PUBLISH_EVENTS": "true",
        }
        with patch.dict(os.environ, env):
            settings = Settings()

        self.assertEqual(settings.WATCH_URI, "s3://bucket/key")
        self.assertEqual(settings.WATCH_INTERVAL, 2.5)
        self.assertEqual(settings.MAX_RUNNING_COUNT, 7)
        self.assertTrue(settings.PUBLISH_EVENTS)

    def test_interval_must_be_positive(self):
        with self.assertRaises(ValidationError):
            Settings(WATCH_INTERVAL=0)

    def test_limits_must_not_be_negative(self):
        with self.assertRaises(ValidationError):
            Settings(MAX_RUNNING_COUNT=-1)
        with self.assertRaises(ValidationError):
            Settings(MAX_RUNNING_TIME=-0.5)

    def test_scheduler_needs_a_worker(self):
        with self.assertRaises(ValidationError):
            Settings(SCHEDULER_WORKERS=0)
        self.assertEqual(Settings(SCHEDULER_WORKERS=1).SCHEDULER_WORKERS, 1)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)
        with patch.dict(os.environ, {"WATCH_URI": "gs://bucket/blob"}):
            first = get_settings()
        self.assertIs(get_settings(), first)
        self.assertEqual(first.WATCH_URI, "gs://bucket/blob")


class TestConfigureLogging(unittest.TestCase):
    """Unit tests for structlog configuration."""

    def tearDown(self):
        structlog.reset_defaults()

    def test_development_and_production(self):
        for environment in (Environment.DEVELOPMENT, Environment.PRODUCTION):
            with self.subTest(environment=environment):
                configure_logging(Settings(ENVIRONMENT=environment, LOG_LEVEL="DEBUG"))
                structlog.get_logger("test").info("Logging configured", environment=environment)

    def test_level_comes_from_settings(self):
        configure_logging(Settings(LOG_LEVEL="WARNING"))
        self.assertEqual(logging.getLogger().level, logging.WARNING)
        self.assertEqual(logging.getLogger("botocore").level, logging.WARNING)

    def test_sdk_loggers_follow_a_stricter_level(self):
        configure_logging(Settings(LOG_LEVEL="ERROR"))
        self.assertEqual(logging.getLogger("google").level, logging.ERROR)


if __name__ == "__main__":
    unittest.main()
