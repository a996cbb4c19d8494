"""
Logging configuration.

On Cloud Run, logs go to Google Cloud Logging. Locally, records are written
to stdout and any structured context passed as extra={"json_fields": {...}}
is printed below the message.
"""

import json
import logging
import os
import sys

_logging_configured = False


class LocalFormatter(logging.Formatter):
    """Formatter that appends the json_fields extra dict."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        json_fields = getattr(record, "json_fields", None)
        if json_fields:
            fields_str = json.dumps(json_fields, indent=2, default=str, ensure_ascii=False)
            message = f"{message}\n{fields_str}"

        return message


def setup_logging(service_name: str = "tracksync", level: int | None = None):
    """
    Configure root logging once per process.

    Args:
        service_name: Name of the service for log identification
        level: Log level; defaults to LOG_LEVEL from the environment or INFO
    """
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    # K_SERVICE is set by Cloud Run
    if os.getenv("K_SERVICE"):
        _setup_cloud_logging(service_name, level)
    else:
        _setup_local_logging(level)

    _logging_configured = True


def _setup_cloud_logging(service_name: str, level: int):
    """Route the root logger to Cloud Logging."""
    try:
        import google.cloud.logging

        client = google.cloud.logging.Client()
        client.setup_logging(log_level=level)

        logging.info("Cloud Logging configured for service: %s", service_name)
    except Exception as e:
        _setup_local_logging(level)
        logging.warning("Failed to setup Cloud Logging, using local logging: %s", e)


def _setup_local_logging(level: int):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LocalFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
