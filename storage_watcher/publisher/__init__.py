"""
Publisher package for sending events to message brokers.

This package provides functionality to publish object change events
to message brokers like RabbitMQ for consumption by other services.
"""
